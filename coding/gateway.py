"""
Submission gateway: validate a grading request, run it, write the results back.

    gateway = build_gateway()
    payload = gateway.grade({'submissionId': ..., 'code': ..., 'assignmentId': ..., 'language': 'python'})

Error responses are raised as coding.exceptions (InvalidRequest 400,
NotFound 404, InternalError 500). When the assignment has no test cases
nothing is written to the submission.
"""
import logging

from django.core.exceptions import ObjectDoesNotExist
from django.db import DatabaseError
from rest_framework.exceptions import PermissionDenied

from coding.config import GraderConfig
from coding.exceptions import InternalError, InvalidRequest, NotFound
from coding.grading import grade_cases
from coding.locks import submission_locks
from coding.sandbox import build_sandbox
from coding.serializers import GradeRequestSerializer
from coding.store import GradingStore

logger = logging.getLogger(__name__)


def _first_error(errors):
    """Flatten DRF serializer errors into one message."""
    missing = [name for name, messages in errors.items()
               if any(getattr(m, 'code', None) in ('required', 'blank', 'null') for m in messages)]
    if missing:
        return 'Missing required parameters: ' + ', '.join(sorted(missing))
    name, messages = next(iter(errors.items()))
    return f'{name}: {messages[0]}'


class SubmissionGateway:
    """Entry point for grading. Collaborators are passed in; build_gateway() wires the defaults."""

    def __init__(self, store, sandbox, config, locks=None):
        self.store = store
        self.sandbox = sandbox
        self.config = config
        self.locks = locks if locks is not None else submission_locks

    def grade(self, data, requested_by=None):
        serializer = GradeRequestSerializer(data=data)
        if not serializer.is_valid():
            raise InvalidRequest(_first_error(serializer.errors))
        request = serializer.validated_data
        submission_id = request['submissionId']
        assignment_id = request['assignmentId']
        language = request['language']

        try:
            assignment = self.store.get_assignment(assignment_id)
            submission = self.store.get_submission(submission_id)
        except DatabaseError:
            logger.exception("Failed to load submission %s", submission_id)
            raise InternalError('Failed to fetch submission')
        if assignment is None:
            raise NotFound('Assignment not found')
        if submission is None:
            raise NotFound('Submission not found')
        if submission.assignment_id != assignment.id:
            raise InvalidRequest('Submission does not belong to this assignment')
        if language != assignment.programming_language:
            raise InvalidRequest(
                f'Language {language} does not match the assignment language {assignment.programming_language}'
            )
        if requested_by is not None and not getattr(requested_by, 'is_teacher', False):
            if submission.student_id != requested_by.pk:
                raise PermissionDenied('You can only grade your own submissions')
        # stored results must describe the stored code
        if request['code'] != submission.submitted_code:
            raise InvalidRequest('Code does not match the submitted code for this submission')

        try:
            cases = self.store.fetch_test_cases(assignment.id)
        except DatabaseError:
            logger.exception("Failed to fetch test cases for assignment %s", assignment.id)
            raise InternalError('Failed to fetch test cases')
        if not cases:
            raise NotFound('No test cases found for this assignment')

        logger.info(
            "Grading submission %s (%s, %d test case(s))", submission_id, language, len(cases),
        )
        with self.locks.hold(submission_id):
            try:
                with self.store.hold_submission(submission_id):
                    summary = grade_cases(
                        cases,
                        request['code'],
                        language,
                        self.sandbox,
                        self.config,
                        timeout=assignment.time_limit_seconds,
                        memory_limit_mb=assignment.memory_limit_mb,
                        comparison_mode=assignment.comparison_mode,
                    )
                    self.store.save_results(submission_id, summary)
            except (DatabaseError, ObjectDoesNotExist):
                logger.exception("Failed to update submission %s", submission_id)
                raise InternalError('Failed to update submission')

        return {
            'success': True,
            'testResults': summary.results,
            'passedTests': summary.passed_count,
            'totalTests': summary.total_count,
            'autoGrade': summary.auto_grade,
        }


def build_gateway(config=None):
    """Gateway wired from Django settings."""
    config = config or GraderConfig.from_settings()
    return SubmissionGateway(
        store=GradingStore(),
        sandbox=build_sandbox(config),
        config=config,
    )
