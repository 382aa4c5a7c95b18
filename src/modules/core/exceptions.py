"""Domain error base class and the REST framework exception handler.

Services raise subclasses of ``DomainError``; they never build HTTP
responses.  ``api_exception_handler`` turns them into ``APIException``
instances carrying the machine-readable ``code`` and lets
drf-standardized-errors render the common envelope::

    {"type": "client_error", "errors": [{"code": "...", "detail": "...", "attr": null}]}
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import structlog
from django.core.exceptions import PermissionDenied
from django.http import Http404
from drf_standardized_errors.handler import exception_handler as standardized_handler
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response

logger = structlog.get_logger(__name__)


class DomainError(Exception):
    """Base class for business-rule and resource errors."""

    code: str = "domain_error"
    status_code: int = status.HTTP_400_BAD_REQUEST


class DomainAPIException(APIException):
    """``APIException`` built from a ``DomainError``."""

    def __init__(self, error: DomainError) -> None:
        self.status_code = error.status_code
        super().__init__(detail=str(error), code=error.code)


def _pydantic_errors(exc: PydanticValidationError) -> Dict[str, list]:
    """Group pydantic errors by dotted field path, DRF style."""
    errors: Dict[str, list] = {}
    for error in exc.errors():
        attr = ".".join(str(part) for part in error["loc"]) or "non_field_errors"
        errors.setdefault(attr, []).append(error["msg"])
    return errors


def api_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    """Translate domain errors, log unexpected ones, delegate the rendering."""
    if isinstance(exc, DomainError):
        logger.info(
            "api.domain_error",
            code=exc.code,
            status_code=exc.status_code,
            detail=str(exc),
        )
        exc = DomainAPIException(exc)
    elif isinstance(exc, PydanticValidationError):
        exc = ValidationError(_pydantic_errors(exc))
    elif not isinstance(exc, (APIException, Http404, PermissionDenied)):
        view = context.get("view")
        request = context.get("request")
        logger.exception(
            "api.unhandled_exception",
            view=view.__class__.__name__ if view else None,
            method=getattr(request, "method", None),
            path=request.get_full_path() if request is not None else None,
        )
    return standardized_handler(exc, context)
