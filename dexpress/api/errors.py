"""Exception handlers: every failure becomes ``{"error": ...}``.

Mapping
-------
- ``DexpressError`` subclasses: their own status and message.
- Request body validation: 400.
- Unknown routes / methods: Starlette's status, ``detail`` as the message.
- ``InvalidTransitionError`` and anything unexpected: logged with the
  traceback, rendered as a bare 500 ``internal_error``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dexpress.core.errors import DexpressError, InvalidTransitionError

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _dexpress_error(request: Request, exc: DexpressError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.message)


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(400, "invalid request body")


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail))


async def _internal_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, "internal_error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DexpressError, _dexpress_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(InvalidTransitionError, _internal_error)
    app.add_exception_handler(Exception, _internal_error)
