"""
DRF exception handler translating domain exceptions to API responses
"""
import logging
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseApplicationException

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    """
    Map application exceptions to HTTP responses:
    {"detail": ..., "error_code": ..., "details": {...}}

    The status comes from the exception class (404 not found, 403 denied,
    409 conflict, 422 business rule, 400 otherwise).
    """
    if isinstance(exc, BaseApplicationException):
        view = context.get('view')
        logger.info(
            f"{type(exc).__name__} [{exc.code}] in "
            f"{view.__class__.__name__ if view else 'unknown view'}: {exc.message}"
        )
        return Response(exc.to_dict(), status=exc.status_code)

    if isinstance(exc, DjangoValidationError):
        # Raised by model full_clean() on save
        if hasattr(exc, 'message_dict'):
            detail = exc.message_dict
        else:
            detail = exc.messages
        return Response(
            {'detail': detail, 'error_code': 'VALIDATION_ERROR'},
            status=status.HTTP_400_BAD_REQUEST
        )

    return exception_handler(exc, context)
