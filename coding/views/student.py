"""
Student coding API
"""
import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.permissions import IsStudent
from coding.gateway import build_gateway
from coding.models import CodingAssignment, CodingSubmission
from coding.serializers import (
    CodingAssignmentSerializer,
    CodingSubmissionSerializer,
    StudentSubmitSerializer,
    present_results,
)

logger = logging.getLogger(__name__)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStudent])
def student_coding_assignments_view(request):
    """GET /api/student/coding/assignments - assignments available to solve."""
    assignments = CodingAssignment.objects.all().order_by('-created_at')
    return Response(CodingAssignmentSerializer(assignments, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStudent])
def student_coding_submit_view(request, pk):
    """
    POST /api/student/coding/assignments/{id}/submit
    Body: { "code": "...", "language": "python" (optional, defaults to the assignment's) }
    Saves the submission, then grades it against all test cases.
    Returns: { submissionId, status, passedTests, totalTests, autoGrade, testResults }
    """
    assignment = CodingAssignment.objects.filter(pk=pk).first()
    if not assignment:
        return Response({'detail': 'Assignment not found', 'code': 'not_found'}, status=status.HTTP_404_NOT_FOUND)
    serializer = StudentSubmitSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    code = serializer.validated_data['code']
    language = serializer.validated_data.get('language') or assignment.programming_language
    submission = CodingSubmission.objects.create(
        assignment=assignment,
        student=request.user,
        submitted_code=code,
        language=language,
    )
    logger.info("Student %s submitted %s for assignment %s", request.user.pk, submission.id, assignment.id)

    payload = build_gateway().grade(
        {
            'submissionId': str(submission.id),
            'code': code,
            'assignmentId': str(assignment.id),
            'language': language,
        },
        requested_by=request.user,
    )
    submission.refresh_from_db(fields=['status'])
    return Response(
        {
            'submissionId': str(submission.id),
            'status': submission.status,
            'passedTests': payload['passedTests'],
            'totalTests': payload['totalTests'],
            'autoGrade': payload['autoGrade'],
            'testResults': present_results(payload['testResults'], reveal_hidden=False),
        },
        status=status.HTTP_201_CREATED,
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStudent])
def student_coding_submission_detail_view(request, pk):
    """GET /api/student/coding/submissions/{id} - own submission, hidden case detail withheld."""
    submission = (
        CodingSubmission.objects.select_related('assignment', 'student')
        .filter(pk=pk, student=request.user)
        .first()
    )
    if not submission:
        return Response({'detail': 'Submission not found', 'code': 'not_found'}, status=status.HTTP_404_NOT_FOUND)
    return Response(CodingSubmissionSerializer(submission, context={'reveal_hidden': False}).data)
