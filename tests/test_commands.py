"""
grade_submission management command and health endpoints.
"""
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from accounts.models import User
from coding.models import CodingAssignment, CodingSubmission, CodingTestCase
from tests.fakes import ScriptedSandbox


class GradeSubmissionCommandTests(TestCase):
    def setUp(self):
        self.student = User.objects.create_user(
            email="cmd@grader.test", password="pass123", full_name="Cmd Student", role="student",
        )
        self.assignment = CodingAssignment.objects.create(title="Echo", programming_language="python")
        CodingTestCase.objects.create(assignment=self.assignment, input_data="hi", expected_output="hi")
        self.submission = CodingSubmission.objects.create(
            assignment=self.assignment, student=self.student, submitted_code="print(input())",
        )
        patcher = mock.patch('coding.gateway.build_sandbox', return_value=ScriptedSandbox({"hi": "hi\n"}))
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_grades_given_submission(self):
        out = StringIO()
        call_command('grade_submission', str(self.submission.id), stdout=out)
        self.assertIn('1/1 passed, auto grade 100', out.getvalue())
        self.submission.refresh_from_db()
        self.assertEqual(self.submission.status, CodingSubmission.STATUS_GRADED)

    def test_pending_grades_ungraded_submissions(self):
        call_command('grade_submission', '--pending', stdout=StringIO())
        self.submission.refresh_from_db()
        self.assertEqual(self.submission.auto_grade, 100)

    def test_unknown_submission_fails(self):
        with self.assertRaises(CommandError):
            call_command('grade_submission', 'not-a-uuid', stdout=StringIO())

    def test_requires_ids_or_pending(self):
        with self.assertRaises(CommandError):
            call_command('grade_submission', stdout=StringIO())


class HealthTests(TestCase):
    def test_health(self):
        res = self.client.get("/api/health/")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["status"], "ok")

    def test_system_health(self):
        res = self.client.get("/api/system/health/")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["db"], "ok")
        self.assertEqual(res.json()["sandbox"], "local")
