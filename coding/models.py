"""
Coding: assignments, test cases, submissions.
Grading results live on the submission row (test_results JSON + counters).
"""
import uuid

from django.core.validators import MinValueValidator
from django.db import models

from accounts.models import User
from coding.comparator import COMPARISON_CHOICES, TRAILING
from coding.sandbox.languages import LANGUAGE_CHOICES, PYTHON


class CodingAssignment(models.Model):
    """Coding assignment: what students solve and which language they solve it in."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=255)
    instructions = models.TextField(blank=True, default='')
    programming_language = models.CharField(max_length=20, choices=LANGUAGE_CHOICES, default=PYTHON)
    starter_code = models.TextField(blank=True, default='')
    comparison_mode = models.CharField(
        max_length=20,
        choices=COMPARISON_CHOICES,
        default=TRAILING,
        help_text='How stdout is compared to expected output',
    )
    time_limit_seconds = models.FloatField(
        null=True,
        blank=True,
        help_text='Per-test-case limit; capped by SANDBOX_MAX_TIMEOUT_SECONDS',
    )
    memory_limit_mb = models.IntegerField(null=True, blank=True)
    due_date = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_coding_assignments',
        limit_choices_to={'role': 'teacher'},
        db_column='created_by_id',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'coding_assignments'
        verbose_name = 'Coding Assignment'
        verbose_name_plural = 'Coding Assignments'
        ordering = ['-created_at']

    def __str__(self):
        return self.title


class CodingTestCase(models.Model):
    """Test case for an assignment. Hidden cases are graded but never shown to students."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    assignment = models.ForeignKey(
        CodingAssignment,
        on_delete=models.CASCADE,
        related_name='test_cases',
    )
    input_data = models.TextField(blank=True, default='')
    expected_output = models.TextField(blank=True, default='')
    is_hidden = models.BooleanField(default=False)
    points = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    description = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'coding_test_cases'
        verbose_name = 'Coding Test Case'
        verbose_name_plural = 'Coding Test Cases'
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['assignment', 'created_at'], name='coding_case_assign_created'),
        ]

    def __str__(self):
        return f"{self.assignment.title} - case {self.id}"


class CodingSubmission(models.Model):
    """
    Student submission for an assignment.
    grade/feedback are the instructor's; auto_grade and test_results are written by the grader.
    """
    STATUS_SUBMITTED = 'submitted'
    STATUS_GRADED = 'graded'
    STATUS_RETURNED = 'returned'
    STATUS_CHOICES = [
        (STATUS_SUBMITTED, 'Submitted'),
        (STATUS_GRADED, 'Graded'),
        (STATUS_RETURNED, 'Returned'),
    ]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    assignment = models.ForeignKey(
        CodingAssignment,
        on_delete=models.CASCADE,
        related_name='submissions',
    )
    student = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='coding_submissions',
        limit_choices_to={'role': 'student'},
    )
    submitted_code = models.TextField()
    language = models.CharField(max_length=20, choices=LANGUAGE_CHOICES, default=PYTHON)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SUBMITTED, db_index=True)
    submitted_at = models.DateTimeField(auto_now_add=True, db_index=True)

    grade = models.IntegerField(null=True, blank=True, help_text='Instructor grade')
    feedback = models.TextField(blank=True, null=True)

    test_results = models.JSONField(
        default=list,
        blank=True,
        help_text='Per-test results [{testCaseId, passed, points, ...}]. Hidden detail is teacher-only.',
    )
    passed_tests = models.IntegerField(null=True, blank=True)
    total_tests = models.IntegerField(null=True, blank=True)
    auto_grade = models.IntegerField(null=True, blank=True)
    graded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'coding_submissions'
        verbose_name = 'Coding Submission'
        verbose_name_plural = 'Coding Submissions'
        ordering = ['-submitted_at']
        indexes = [
            models.Index(fields=['student', 'submitted_at'], name='coding_sub_student_at'),
            models.Index(fields=['assignment', 'student'], name='coding_sub_assign_student'),
        ]

    def __str__(self):
        return f"{self.student.full_name} - {self.assignment.title} - {self.status}"
