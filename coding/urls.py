"""
URLs for coding grading API
"""
from django.urls import path

from coding.views.grading import run_tests_view
from coding.views.student import (
    student_coding_assignments_view,
    student_coding_submission_detail_view,
    student_coding_submit_view,
)
from coding.views.teacher import (
    teacher_coding_assignments_view,
    teacher_coding_regrade_view,
    teacher_coding_submissions_view,
    teacher_coding_test_cases_view,
)

urlpatterns = [
    path('coding/run-tests', run_tests_view, name='coding-run-tests'),
    path('student/coding/assignments', student_coding_assignments_view, name='student-coding-assignments'),
    path('student/coding/assignments/<uuid:pk>/submit', student_coding_submit_view, name='student-coding-submit'),
    path('student/coding/submissions/<uuid:pk>', student_coding_submission_detail_view, name='student-coding-submission-detail'),
    path('teacher/coding/assignments', teacher_coding_assignments_view, name='teacher-coding-assignments'),
    path('teacher/coding/assignments/<uuid:pk>/test-cases', teacher_coding_test_cases_view, name='teacher-coding-test-cases'),
    path('teacher/coding/assignments/<uuid:pk>/submissions', teacher_coding_submissions_view, name='teacher-coding-submissions'),
    path('teacher/coding/submissions/<uuid:pk>/regrade', teacher_coding_regrade_view, name='teacher-coding-regrade'),
]
