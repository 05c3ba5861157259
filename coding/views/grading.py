"""
Grading gateway API
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.permissions import IsTeacherOrStudent
from coding.gateway import build_gateway
from coding.serializers import present_results


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsTeacherOrStudent])
def run_tests_view(request):
    """
    POST /api/coding/run-tests
    Body: { submissionId, code, assignmentId, language }
    Returns: { success, testResults, passedTests, totalTests, autoGrade }
    Errors: { error, code } with 400 / 404 / 500.
    Students may only grade their own submissions and never see hidden case detail.
    """
    payload = build_gateway().grade(request.data, requested_by=request.user)
    payload['testResults'] = present_results(payload['testResults'], reveal_hidden=request.user.is_teacher)
    return Response(payload)
