"""
Custom middleware for the grader backend.
"""
import logging
import time

from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)


class GradingRequestLogMiddleware(MiddlewareMixin):
    """
    Log method, path, status and wall time for requests that reach the grader.
    """
    LOGGED_PREFIXES = ('/api/coding/', '/api/student/coding/', '/api/teacher/coding/')

    def process_request(self, request):
        request._grading_started = time.perf_counter()

    def process_response(self, request, response):
        path = request.path
        started = getattr(request, '_grading_started', None)
        if started is None or not path.startswith(self.LOGGED_PREFIXES):
            return response
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        status_code = getattr(response, 'status_code', None)
        if status_code is not None and status_code >= 500:
            logger.warning('%s %s -> %s in %sms', request.method, path, status_code, elapsed_ms)
        else:
            logger.info('%s %s -> %s in %sms', request.method, path, status_code, elapsed_ms)
        return response
