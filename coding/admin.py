"""
Admin configuration for coding app
"""
from django.contrib import admin
from .models import CodingAssignment, CodingTestCase, CodingSubmission


class CodingTestCaseInline(admin.TabularInline):
    model = CodingTestCase
    extra = 0
    fields = ['input_data', 'expected_output', 'is_hidden', 'points', 'description']


@admin.register(CodingAssignment)
class CodingAssignmentAdmin(admin.ModelAdmin):
    list_display = ['title', 'programming_language', 'comparison_mode', 'created_by', 'created_at']
    list_filter = ['programming_language', 'created_at']
    search_fields = ['title', 'instructions']
    readonly_fields = ['created_at', 'updated_at']
    ordering = ['-created_at']
    inlines = [CodingTestCaseInline]


@admin.register(CodingTestCase)
class CodingTestCaseAdmin(admin.ModelAdmin):
    list_display = ['assignment', 'is_hidden', 'points', 'created_at']
    list_filter = ['is_hidden']


@admin.register(CodingSubmission)
class CodingSubmissionAdmin(admin.ModelAdmin):
    list_display = ['assignment', 'student', 'language', 'status', 'passed_tests', 'total_tests', 'auto_grade', 'submitted_at']
    list_filter = ['status', 'language', 'submitted_at']
    search_fields = ['student__email', 'assignment__title']
    readonly_fields = ['test_results', 'passed_tests', 'total_tests', 'auto_grade', 'graded_at', 'submitted_at']
