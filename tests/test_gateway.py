"""
Submission gateway: request validation, error mapping and idempotent persistence.
Uses the real ORM store and a scripted sandbox.
"""
import uuid
from contextlib import contextmanager
from datetime import timedelta

from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied

from accounts.models import User
from coding.config import GraderConfig
from coding.exceptions import InternalError, InvalidRequest, NotFound
from coding.gateway import SubmissionGateway
from coding.locks import KeyedLocks
from coding.models import CodingAssignment, CodingSubmission, CodingTestCase
from coding.sandbox import ErrorKind, ExecutionTimedOut
from coding.store import GradingStore
from tests.fakes import ScriptedSandbox


def stagger_created_at(cases):
    """Give cases distinct creation times in list order."""
    base = timezone.now() - timedelta(hours=1)
    for i, case in enumerate(cases):
        CodingTestCase.objects.filter(pk=case.pk).update(created_at=base + timedelta(seconds=i))


class FailingStore(GradingStore):
    def save_results(self, submission_id, summary):
        raise DatabaseError("connection reset")


class RecordingStore(GradingStore):
    def __init__(self):
        self.events = []

    @contextmanager
    def hold_submission(self, submission_id):
        self.events.append('hold')
        yield
        self.events.append('release')

    def save_results(self, submission_id, summary):
        self.events.append('save')
        return super().save_results(submission_id, summary)


class SubmissionGatewayTests(TestCase):
    def setUp(self):
        self.teacher = User.objects.create_user(
            email="teacher@grader.test", password="pass123", full_name="Teacher", role="teacher",
        )
        self.student = User.objects.create_user(
            email="student@grader.test", password="pass123", full_name="Student", role="student",
        )
        self.other_student = User.objects.create_user(
            email="other@grader.test", password="pass123", full_name="Other", role="student",
        )
        self.assignment = CodingAssignment.objects.create(
            title="Double it", programming_language="python", created_by=self.teacher,
        )
        self.cases = [
            CodingTestCase.objects.create(assignment=self.assignment, input_data="1", expected_output="2", points=1),
            CodingTestCase.objects.create(assignment=self.assignment, input_data="2", expected_output="4", points=1),
            CodingTestCase.objects.create(
                assignment=self.assignment, input_data="5", expected_output="10", points=2, is_hidden=True,
            ),
        ]
        stagger_created_at(self.cases)
        self.submission = CodingSubmission.objects.create(
            assignment=self.assignment, student=self.student, submitted_code="print(int(input()) * 2)",
        )
        self.config = GraderConfig(fault_backoff_seconds=0.0, max_workers=2)

    def gateway(self, sandbox, store=None):
        return SubmissionGateway(store or GradingStore(), sandbox, self.config, locks=KeyedLocks())

    def request(self, **overrides):
        data = {
            'submissionId': str(self.submission.id),
            'code': self.submission.submitted_code,
            'assignmentId': str(self.assignment.id),
            'language': 'python',
        }
        data.update(overrides)
        return {k: v for k, v in data.items() if v is not None}

    def test_success_persists_results(self):
        sandbox = ScriptedSandbox({"1": "2\n", "2": "5\n", "5": "10\n"})
        payload = self.gateway(sandbox).grade(self.request())

        self.assertTrue(payload['success'])
        self.assertEqual(payload['passedTests'], 2)
        self.assertEqual(payload['totalTests'], 3)
        self.assertEqual(payload['autoGrade'], 75)
        self.assertEqual([r['testCaseId'] for r in payload['testResults']], [str(c.id) for c in self.cases])

        self.submission.refresh_from_db()
        self.assertEqual(self.submission.status, CodingSubmission.STATUS_GRADED)
        self.assertEqual(self.submission.passed_tests, 2)
        self.assertEqual(self.submission.total_tests, 3)
        self.assertEqual(self.submission.auto_grade, 75)
        self.assertIsNotNone(self.submission.graded_at)
        self.assertEqual(self.submission.test_results, payload['testResults'])
        self.assertTrue(self.submission.test_results[2]['isHidden'])

    def test_missing_field_is_invalid_request(self):
        for field in ('submissionId', 'code', 'assignmentId', 'language'):
            with self.subTest(field=field):
                with self.assertRaises(InvalidRequest) as ctx:
                    self.gateway(ScriptedSandbox()).grade(self.request(**{field: None}))
                self.assertIn('Missing required parameters', str(ctx.exception.detail))
                self.assertEqual(ctx.exception.status_code, 400)

    def test_blank_code_is_invalid_request(self):
        with self.assertRaises(InvalidRequest):
            self.gateway(ScriptedSandbox()).grade(self.request(code="   \n"))

    def test_unknown_language_is_invalid_request(self):
        with self.assertRaises(InvalidRequest) as ctx:
            self.gateway(ScriptedSandbox()).grade(self.request(language="cobol"))
        self.assertIn('cobol', str(ctx.exception.detail))

    def test_language_must_match_assignment(self):
        with self.assertRaises(InvalidRequest):
            self.gateway(ScriptedSandbox()).grade(self.request(language="java"))

    def test_non_string_values_are_invalid_request(self):
        for field, value in (('code', 123), ('language', ['python']), ('submissionId', 5), ('code', True)):
            with self.subTest(field=field, value=value):
                sandbox = ScriptedSandbox()
                with self.assertRaises(InvalidRequest) as ctx:
                    self.gateway(sandbox).grade(self.request(**{field: value}))
                self.assertIn(field, str(ctx.exception.detail))
                self.assertEqual(sandbox.calls, [])

    def test_malformed_ids_are_invalid_request(self):
        with self.assertRaises(InvalidRequest):
            self.gateway(ScriptedSandbox()).grade(self.request(submissionId="not-a-uuid"))

    def test_submission_from_other_assignment_is_invalid_request(self):
        other = CodingAssignment.objects.create(title="Other", programming_language="python")
        CodingTestCase.objects.create(assignment=other, input_data="", expected_output="")
        with self.assertRaises(InvalidRequest):
            self.gateway(ScriptedSandbox()).grade(self.request(assignmentId=str(other.id)))

    def test_code_other_than_submitted_code_is_rejected(self):
        sandbox = ScriptedSandbox({"1": "2\n", "2": "4\n", "5": "10\n"})
        with self.assertRaises(InvalidRequest) as ctx:
            self.gateway(sandbox).grade(self.request(code='print("2")'))
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(sandbox.calls, [])

        self.submission.refresh_from_db()
        self.assertEqual(self.submission.submitted_code, "print(int(input()) * 2)")
        self.assertIsNone(self.submission.auto_grade)
        self.assertEqual(self.submission.status, CodingSubmission.STATUS_SUBMITTED)

    def test_unknown_assignment_is_not_found(self):
        with self.assertRaises(NotFound):
            self.gateway(ScriptedSandbox()).grade(self.request(assignmentId=str(uuid.uuid4())))

    def test_zero_test_cases_is_not_found_and_writes_nothing(self):
        CodingTestCase.objects.filter(assignment=self.assignment).delete()
        sandbox = ScriptedSandbox()
        with self.assertRaises(NotFound) as ctx:
            self.gateway(sandbox).grade(self.request())
        self.assertEqual(str(ctx.exception.detail), 'No test cases found for this assignment')
        self.assertEqual(sandbox.calls, [])

        self.submission.refresh_from_db()
        self.assertEqual(self.submission.status, CodingSubmission.STATUS_SUBMITTED)
        self.assertEqual(self.submission.test_results, [])
        self.assertIsNone(self.submission.auto_grade)
        self.assertIsNone(self.submission.graded_at)

    def test_store_failure_is_internal_error(self):
        sandbox = ScriptedSandbox(default="2")
        with self.assertLogs('coding.gateway', level='ERROR'):
            with self.assertRaises(InternalError) as ctx:
                self.gateway(sandbox, store=FailingStore()).grade(self.request())
        self.assertEqual(ctx.exception.status_code, 500)
        self.submission.refresh_from_db()
        self.assertEqual(self.submission.test_results, [])

    def test_grading_and_saving_happen_under_the_submission_lock(self):
        store = RecordingStore()
        self.gateway(ScriptedSandbox(default="2"), store=store).grade(self.request())
        self.assertEqual(store.events, ['hold', 'save', 'release'])

    def test_regrade_overwrites_previous_results(self):
        self.gateway(ScriptedSandbox(default="wrong")).grade(self.request())
        self.submission.refresh_from_db()
        self.assertEqual(self.submission.auto_grade, 0)
        first_graded_at = self.submission.graded_at

        payload = self.gateway(ScriptedSandbox({"1": "2", "2": "4", "5": "10"})).grade(self.request())
        self.submission.refresh_from_db()
        self.assertEqual(payload['autoGrade'], 100)
        self.assertEqual(len(self.submission.test_results), 3)
        self.assertEqual(self.submission.passed_tests, 3)
        self.assertEqual(self.submission.auto_grade, 100)
        self.assertGreaterEqual(self.submission.graded_at, first_graded_at)

    def test_same_input_grades_the_same(self):
        script = {"1": "2", "2": "4", "5": ExecutionTimedOut("Execution exceeded the 5s time limit")}
        first = self.gateway(ScriptedSandbox(script)).grade(self.request())
        second = self.gateway(ScriptedSandbox(script)).grade(self.request())
        self.assertEqual(first['autoGrade'], second['autoGrade'])
        self.assertEqual(
            [(r['passed'], r['errorKind']) for r in first['testResults']],
            [(r['passed'], r['errorKind']) for r in second['testResults']],
        )

    def test_hidden_cases_count_towards_score(self):
        payload = self.gateway(ScriptedSandbox({"1": "x", "2": "x", "5": "10"})).grade(self.request())
        self.assertEqual(payload['passedTests'], 1)
        self.assertEqual(payload['autoGrade'], 50)

    def test_timeout_case_is_recorded_not_raised(self):
        sandbox = ScriptedSandbox({"1": "2", "2": ExecutionTimedOut("too slow"), "5": "10"})
        payload = self.gateway(sandbox).grade(self.request())
        self.assertEqual(payload['totalTests'], 3)
        self.assertEqual(payload['testResults'][1]['errorKind'], ErrorKind.TIMEOUT)

    def test_cases_run_in_creation_order(self):
        now = timezone.now()
        for offset, case in zip((3, 2, 1), self.cases):
            CodingTestCase.objects.filter(pk=case.pk).update(created_at=now - timedelta(minutes=offset))
        CodingTestCase.objects.filter(pk=self.cases[0].pk).update(created_at=now)
        payload = self.gateway(ScriptedSandbox(default="")).grade(self.request())
        self.assertEqual(
            [r['testCaseId'] for r in payload['testResults']],
            [str(self.cases[1].id), str(self.cases[2].id), str(self.cases[0].id)],
        )

    def test_assignment_limits_are_passed_to_sandbox(self):
        self.assignment.time_limit_seconds = 1.5
        self.assignment.memory_limit_mb = 64
        self.assignment.save()
        sandbox = ScriptedSandbox(default="")
        self.gateway(sandbox).grade(self.request())
        self.assertEqual({c['timeout'] for c in sandbox.calls}, {1.5})
        self.assertEqual({c['memory_limit_mb'] for c in sandbox.calls}, {64})

    def test_student_cannot_grade_someone_elses_submission(self):
        with self.assertRaises(PermissionDenied):
            self.gateway(ScriptedSandbox()).grade(self.request(), requested_by=self.other_student)

    def test_owner_and_teacher_may_grade(self):
        self.gateway(ScriptedSandbox(default="")).grade(self.request(), requested_by=self.student)
        self.gateway(ScriptedSandbox(default="")).grade(self.request(), requested_by=self.teacher)
