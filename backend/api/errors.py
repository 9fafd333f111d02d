"""
Map service errors to HTTP responses.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from services.errors import InternalError, TrustCoreError

logger = logging.getLogger(__name__)


async def trust_core_error_handler(request: Request, exc: TrustCoreError) -> JSONResponse:
    if isinstance(exc, InternalError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TrustCoreError, trust_core_error_handler)
