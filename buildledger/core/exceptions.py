import logging

from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Business rule violation raised from service code and rendered as {'error': ...}"""

    def __init__(self, message, status_code=status.HTTP_400_BAD_REQUEST, extra=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.extra = extra or {}


def _flatten_detail(detail):
    if isinstance(detail, list):
        return _flatten_detail(detail[0]) if detail else ''
    if isinstance(detail, dict):
        for field, value in detail.items():
            message = _flatten_detail(value)
            if field in ('detail', 'non_field_errors'):
                return message
            return f"{field}: {message}"
        return ''
    return str(detail)


def custom_exception_handler(exc, context):
    """Render every API error with the same {'error': message} envelope"""
    if isinstance(exc, ServiceError):
        body = {'error': exc.message}
        body.update(exc.extra)
        return Response(body, status=exc.status_code)

    if isinstance(exc, Http404):
        return Response({'error': 'Not found.'}, status=status.HTTP_404_NOT_FOUND)

    if isinstance(exc, exceptions.NotAuthenticated):
        response = exception_handler(exc, context)
        response.data = {'error': 'Authentication required'}
        return response

    response = exception_handler(exc, context)
    if response is None:
        view = context.get('view')
        logger.error(f"Unhandled error in {view.__class__.__name__ if view else 'view'}: {exc}", exc_info=exc)
        return None

    if isinstance(exc, exceptions.APIException):
        response.data = {'error': _flatten_detail(exc.detail)}
    return response
