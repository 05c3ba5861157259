"""
Custom permissions for role-based access
"""
from rest_framework import permissions


class IsTeacher(permissions.BasePermission):
    """Permission check for teacher role"""

    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            request.user.role == 'teacher'
        )


class IsStudent(permissions.BasePermission):
    """Permission check for student role"""

    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            request.user.role == 'student'
        )


class IsTeacherOrStudent(permissions.BasePermission):
    """
    Either role may call the grading gateway. Students are further limited
    to their own submissions inside the view (object-level check).
    """

    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            request.user.role in ('teacher', 'student')
        )
