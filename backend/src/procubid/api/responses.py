"""Mapping from service errors to HTTP responses."""

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from procubid.core.errors import ErrorKind, ServiceError

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.PRECONDITION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.STORE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# Codes whose status differs from their kind's default
STATUS_BY_CODE = {
    "NOT_INVITED": status.HTTP_403_FORBIDDEN,
}


def status_for(error: ServiceError) -> int:
    return STATUS_BY_CODE.get(error.code, STATUS_BY_KIND[error.kind])


def error_body(code: str, message: str, **details) -> dict:
    return {"success": False, "error": message, "code": code, **jsonable_encoder(details)}


def error_response(error: ServiceError) -> JSONResponse:
    """Render a ServiceError as `{"success": false, "error", "code", ...details}`."""
    return JSONResponse(
        status_code=status_for(error),
        content=error_body(error.code, error.message, **error.details),
    )


CODE_BY_STATUS = {
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors (auth guards, unknown routes) in the error envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(CODE_BY_STATUS.get(exc.status_code, "HTTP_ERROR"), str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )
