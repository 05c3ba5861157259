"""
Grading store: reads test cases and writes grading results through the ORM.
"""
import logging

from django.db import transaction
from django.utils import timezone

from coding.grading import GradingCase
from coding.locks import advisory_lock
from coding.models import CodingAssignment, CodingSubmission, CodingTestCase

logger = logging.getLogger(__name__)


class GradingStore:

    def hold_submission(self, submission_id):
        """Cross-process lock held while a submission is graded and saved."""
        return advisory_lock(submission_id)

    def get_assignment(self, assignment_id):
        return CodingAssignment.objects.filter(pk=assignment_id).first()

    def get_submission(self, submission_id):
        return CodingSubmission.objects.select_related('assignment').filter(pk=submission_id).first()

    def fetch_test_cases(self, assignment_id):
        """Test cases for the assignment, oldest first (ties broken by id)."""
        cases = CodingTestCase.objects.filter(assignment_id=assignment_id).order_by('created_at', 'id')
        return [
            GradingCase(
                id=str(tc.id),
                input_data=tc.input_data or '',
                expected_output=tc.expected_output or '',
                is_hidden=tc.is_hidden,
                points=tc.points,
            )
            for tc in cases
        ]

    def save_results(self, submission_id, summary):
        """
        Overwrite the submission's grading fields with `summary`.
        Re-grading replaces the previous results; nothing is appended.
        """
        with transaction.atomic():
            submission = CodingSubmission.objects.select_for_update().get(pk=submission_id)
            submission.test_results = summary.results
            submission.passed_tests = summary.passed_count
            submission.total_tests = summary.total_count
            submission.auto_grade = summary.auto_grade
            submission.graded_at = timezone.now()
            if submission.status == CodingSubmission.STATUS_SUBMITTED:
                submission.status = CodingSubmission.STATUS_GRADED
            submission.save(update_fields=[
                'test_results', 'passed_tests', 'total_tests', 'auto_grade', 'graded_at', 'status',
            ])
        logger.info(
            "Saved grading for submission %s: %d/%d passed, auto grade %d",
            submission_id, summary.passed_count, summary.total_count, summary.auto_grade,
        )
        return submission
