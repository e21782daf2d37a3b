"""DRF exception handler that renders domain errors."""

from __future__ import annotations

import logging

from rest_framework.response import Response  # type: ignore
from rest_framework.views import exception_handler as drf_exception_handler  # type: ignore

from shared.domain.exceptions import DomainError, InternalError, PaymentProviderError

logger = logging.getLogger(__name__)


def domain_exception_handler(exc, context):  # type: ignore
    """Map ``DomainError`` subclasses to responses, defer everything else to DRF."""

    if not isinstance(exc, DomainError):
        return drf_exception_handler(exc, context)

    view = context.get("view")
    view_name = view.__class__.__name__ if view is not None else "unknown"

    if isinstance(exc, InternalError):
        logger.error(f"Internal error in {view_name}: {exc.message}", exc_info=exc)
    elif isinstance(exc, PaymentProviderError):
        logger.warning(
            f"Payment provider error in {view_name}: provider={exc.provider} "
            f"classification={exc.classification} status={exc.status_code}"
        )
    else:
        logger.info(f"{exc.__class__.__name__} in {view_name}: {exc.message}")

    return Response(exc.to_dict(), status=exc.http_status)
