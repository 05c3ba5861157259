"""
Teacher coding API: assignments, test cases, regrading
"""
import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.permissions import IsTeacher
from coding.gateway import build_gateway
from coding.models import CodingAssignment, CodingSubmission, CodingTestCase
from coding.serializers import (
    CodingAssignmentSerializer,
    CodingSubmissionSerializer,
    CodingTestCaseCreateSerializer,
    CodingTestCaseSerializer,
)

logger = logging.getLogger(__name__)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTeacher])
def teacher_coding_assignments_view(request):
    """
    GET /api/teacher/coding/assignments - list assignments
    POST /api/teacher/coding/assignments - create assignment
    """
    if request.method == 'GET':
        assignments = CodingAssignment.objects.all().order_by('-created_at')
        return Response(CodingAssignmentSerializer(assignments, many=True).data)

    serializer = CodingAssignmentSerializer(data=request.data)
    if serializer.is_valid():
        assignment = serializer.save(created_by=request.user)
        return Response(CodingAssignmentSerializer(assignment).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTeacher])
def teacher_coding_test_cases_view(request, pk):
    """
    GET /api/teacher/coding/assignments/{id}/test-cases - list test cases in grading order
    POST /api/teacher/coding/assignments/{id}/test-cases - add a test case
    """
    assignment = CodingAssignment.objects.filter(pk=pk).first()
    if not assignment:
        return Response({'detail': 'Assignment not found', 'code': 'not_found'}, status=status.HTTP_404_NOT_FOUND)

    if request.method == 'GET':
        cases = CodingTestCase.objects.filter(assignment=assignment).order_by('created_at', 'id')
        return Response(CodingTestCaseSerializer(cases, many=True).data)

    serializer = CodingTestCaseCreateSerializer(data=request.data)
    if serializer.is_valid():
        case = serializer.save(assignment=assignment)
        return Response(CodingTestCaseSerializer(case).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTeacher])
def teacher_coding_submissions_view(request, pk):
    """GET /api/teacher/coding/assignments/{id}/submissions - all submissions with full results."""
    submissions = (
        CodingSubmission.objects.filter(assignment_id=pk)
        .select_related('assignment', 'student')
        .order_by('-submitted_at')
    )
    serializer = CodingSubmissionSerializer(submissions, many=True, context={'reveal_hidden': True})
    return Response(serializer.data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsTeacher])
def teacher_coding_regrade_view(request, pk):
    """
    POST /api/teacher/coding/submissions/{id}/regrade
    Re-runs the stored code; previous results are replaced.
    """
    submission = CodingSubmission.objects.filter(pk=pk).first()
    if not submission:
        return Response({'detail': 'Submission not found', 'code': 'not_found'}, status=status.HTTP_404_NOT_FOUND)
    logger.info("Teacher %s requested regrade of submission %s", request.user.pk, submission.id)
    payload = build_gateway().grade(
        {
            'submissionId': str(submission.id),
            'code': submission.submitted_code,
            'assignmentId': str(submission.assignment_id),
            'language': submission.language,
        },
        requested_by=request.user,
    )
    return Response(payload)
