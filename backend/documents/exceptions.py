"""
Document lifecycle exceptions.

Every lifecycle operation fails with one of four kinds. Each kind carries the
HTTP status the API answers with, so views never translate errors by hand.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class LifecycleError(Exception):
    """Base exception for all document lifecycle errors."""
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'lifecycle_error'

    def __init__(self, message: str, document_id=None):
        self.message = message
        self.document_id = document_id
        super().__init__(message)


class NotFound(LifecycleError):
    """Raised when a document (or template) id does not resolve."""
    status_code = status.HTTP_404_NOT_FOUND
    code = 'not_found'


class Forbidden(LifecycleError):
    """Raised when the actor lacks the role or tenant ownership for an operation."""
    status_code = status.HTTP_403_FORBIDDEN
    code = 'forbidden'


class InvalidState(LifecycleError):
    """
    Raised when a transition guard fails.

    This includes a wrong current status, an unknown or already-signed
    signatory and a workflow step out of range.
    """
    status_code = status.HTTP_409_CONFLICT
    code = 'invalid_state'


class DependencyFailure(LifecycleError):
    """
    Raised when an external collaborator (signing primitive, extraction
    service) fails. Wraps the underlying error.
    """
    status_code = status.HTTP_502_BAD_GATEWAY
    code = 'dependency_failure'

    def __init__(self, message: str, document_id=None, dependency: str = None):
        self.dependency = dependency
        super().__init__(message, document_id=document_id)


def lifecycle_exception_handler(exc, context):
    """
    DRF exception handler: lifecycle errors become `{"error", "code"}`
    responses; everything else goes through DRF's default handling.
    """
    if isinstance(exc, LifecycleError):
        view = context.get('view')
        logger.info(
            f"{exc.code} in {view.__class__.__name__ if view else 'unknown view'}: {exc.message}"
        )
        return Response({'error': exc.message, 'code': exc.code}, status=exc.status_code)
    return exception_handler(exc, context)
