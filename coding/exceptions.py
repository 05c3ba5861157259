"""
Request-level grading errors.

Per-test-case failures are SandboxError subclasses (coding.sandbox) and are
folded into TestResult rows; these are raised only for the request as a whole.
"""
from rest_framework import status
from rest_framework.exceptions import APIException


class GradingRequestError(APIException):
    """Base for errors the gateway reports to the caller as { error, code }."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Grading request failed.'
    default_code = 'grading_error'


class InvalidRequest(GradingRequestError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Missing required parameters'
    default_code = 'invalid_request'


class NotFound(GradingRequestError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'No test cases found for this assignment'
    default_code = 'not_found'


class InternalError(GradingRequestError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Failed to run tests'
    default_code = 'internal_error'
