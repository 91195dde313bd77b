import logging

from django.db import IntegrityError
from django.db.models.deletion import ProtectedError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from domain.shared.exceptions import (
    AuthorizationException,
    ConflictException,
    DomainException,
    EntityNotFoundException,
    ValidationException,
)

logger = logging.getLogger(__name__)

DOMAIN_STATUS = (
    (ValidationException, status.HTTP_400_BAD_REQUEST),
    (AuthorizationException, status.HTTP_403_FORBIDDEN),
    (EntityNotFoundException, status.HTTP_404_NOT_FOUND),
    (ConflictException, status.HTTP_409_CONFLICT),
)


def custom_exception_handler(exc, context):
    """
    Render domain and integrity errors; everything else goes to DRF.
    """
    if isinstance(exc, DomainException):
        for exc_class, status_code in DOMAIN_STATUS:
            if isinstance(exc, exc_class):
                break
        else:
            status_code = status.HTTP_400_BAD_REQUEST
        if status_code == status.HTTP_409_CONFLICT:
            logger.warning(f"Conflict: {exc.message}")
        return Response(
            {
                'detail': exc.message,
                'error': exc.code,
                'details': exc.details,
            },
            status=status_code,
        )

    if isinstance(exc, ProtectedError):
        protected = [str(o) for o in list(exc.protected_objects)[:5]]
        return Response(
            {
                'detail': "Suppression impossible : l'objet est référencé ailleurs.",
                'error': 'protected_error',
                'protected_objects_sample': protected,
            },
            status=status.HTTP_409_CONFLICT,
        )

    if isinstance(exc, IntegrityError):
        return Response(
            {
                'detail': "Violation d'intégrité des données.",
                'error': 'integrity_error',
            },
            status=status.HTTP_409_CONFLICT,
        )

    return exception_handler(exc, context)
