"""
Application exception hierarchy and the handlers that turn exceptions into
ApiResponse envelopes.

Helpers raise these close to the failed check; routes let them propagate
(they are HTTPExceptions, so the usual `except HTTPException: raise` keeps
working) and the handlers registered in main.py render them.
"""
from fastapi import FastAPI, HTTPException, Request, status
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from typing import List, Optional
import logging

from utils.response_helpers import ApiResponse

logger = logging.getLogger(__name__)


class AppException(HTTPException):
    """Base class for errors the API reports to clients on purpose"""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str, errors: Optional[List[str]] = None):
        super().__init__(status_code=self.status_code, detail=detail)
        self.errors = errors


class NotFoundError(AppException):
    status_code = status.HTTP_404_NOT_FOUND


class InputValidationError(AppException):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str = "Validation failed", errors: Optional[List[str]] = None):
        super().__init__(detail, errors or [])


class AuthorizationError(AppException):
    status_code = status.HTTP_403_FORBIDDEN


class BusinessRuleViolation(AppException):
    status_code = status.HTTP_400_BAD_REQUEST


class DuplicateEntryError(BusinessRuleViolation):
    status_code = status.HTTP_409_CONFLICT


class InsufficientStockError(BusinessRuleViolation):
    def __init__(self, product_id: int, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for product {product_name}: "
            f"requested {requested}, available {available}"
        )
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.requested = requested


class OrderValidationError(BusinessRuleViolation):
    pass


class InvalidStatusTransitionError(BusinessRuleViolation):
    def __init__(self, current_status: str, new_status: str):
        super().__init__(f"Cannot change item status from {current_status} to {new_status}")
        self.current_status = current_status
        self.new_status = new_status


class SellerNotApprovedError(BusinessRuleViolation):
    def __init__(self, detail: str = "Seller account is not approved yet"):
        super().__init__(detail)


def _envelope(status_code: int, error: Optional[str], validation_errors: Optional[List[str]] = None) -> JSONResponse:
    body = ApiResponse(error=error, validation_errors=validation_errors)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body.model_dump(by_alias=True))
    )


async def app_exception_handler(request: Request, exc: AppException):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.detail}")
    return _envelope(exc.status_code, exc.detail, exc.errors)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    response = _envelope(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def request_validation_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))

    logger.warning(f"Request validation failed for {request.url.path}: {messages}")
    return _envelope(status.HTTP_400_BAD_REQUEST, "Validation failed", messages)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {str(exc)}")
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
