"""
Request ID propagation for logs.

RequestIDMiddleware tags each request with an ID (reusing a sane
X-Request-ID sent by the proxy) and RequestIDFilter stamps it on every log
record emitted while the request is handled.
"""
import logging
import re
import threading
import uuid

_request_local = threading.local()

INCOMING_ID_PATTERN = re.compile(r'^[A-Za-z0-9-]{1,64}$')


def get_current_request_id():
    return getattr(_request_local, 'request_id', None)


class RequestIDFilter(logging.Filter):

    def filter(self, record):
        if not getattr(record, 'request_id', None):
            record.request_id = get_current_request_id() or 'N/A'
        return True


class RequestIDMiddleware:

    def __init__(self, get_response):
        self.get_response = get_response

    def _request_id(self, request):
        incoming = request.META.get('HTTP_X_REQUEST_ID', '')
        if INCOMING_ID_PATTERN.match(incoming):
            return incoming
        return uuid.uuid4().hex[:8]

    def __call__(self, request):
        request.request_id = self._request_id(request)
        _request_local.request_id = request.request_id
        try:
            response = self.get_response(request)
        finally:
            _request_local.request_id = None

        response['X-Request-ID'] = request.request_id
        return response

    def process_exception(self, request, exception):
        logging.getLogger('django.request').error(
            f"Unhandled {type(exception).__name__} on {request.method} {request.path}: {exception}",
            exc_info=True,
        )
