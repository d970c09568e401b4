"""
API error taxonomy and the JSON error envelope.

Every error response has the shape {"error": {"code": ..., "message": ...}}.
"""
import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class APIError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "SERVER_ERROR"
    message = "Internal server error"

    def __init__(self, message: str | None = None, headers: dict | None = None):
        super().__init__(status_code=self.status_code, detail=message or self.message, headers=headers)


class InvalidInput(APIError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_INPUT"
    message = "Invalid input"


class Unauthorized(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"
    message = "Missing or invalid authorization header"


class InvalidToken(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "INVALID_TOKEN"
    message = "Invalid or expired token"


class InvalidCredentials(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "INVALID_CREDENTIALS"
    message = "Invalid email or password"


class Forbidden(APIError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    message = "Forbidden"


class UserNotFound(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "USER_NOT_FOUND"
    message = "User not found"


class ProductNotFound(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "PRODUCT_NOT_FOUND"
    message = "Product not found"


class OrderNotFound(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "ORDER_NOT_FOUND"
    message = "Order not found"


class UserExists(APIError):
    status_code = status.HTTP_409_CONFLICT
    code = "USER_EXISTS"
    message = "Email or username already exists"


class OutOfStock(APIError):
    status_code = status.HTTP_409_CONFLICT
    code = "OUT_OF_STOCK"
    message = "Product is out of stock"


class CannotCancel(APIError):
    status_code = status.HTTP_409_CONFLICT
    code = "CANNOT_CANCEL"
    message = "Order cannot be cancelled (already shipped or delivered)"


class ServerError(APIError):
    pass


_DEFAULT_CODES = {
    status.HTTP_400_BAD_REQUEST: "INVALID_INPUT",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


def error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = getattr(exc, "code", None) or _DEFAULT_CODES.get(exc.status_code, "HTTP_ERROR")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid input"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_body("INVALID_INPUT", message))


async def server_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("SERVER_ERROR", "Internal server error"),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(PyMongoError, server_error_handler)
    app.add_exception_handler(Exception, server_error_handler)
