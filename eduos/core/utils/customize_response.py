import logging
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Any, Optional, Generic, TypeVar

logger = logging.getLogger(__name__)


class AuthAPIResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Any] = None
    user : Optional[Any] = None
    error: Optional[Any] = None

class APIResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Any] = None
    error: Optional[Any] = None

def success_response(message: str, data=None):
    return APIResponse(
        success=True,
        message=message,
        data=data,
        error=None
    )

def success_login_response(message: str, data=None, user=None):
    return AuthAPIResponse(
        success=True,
        message=message,
        data=data,
        user=user,
        error=None
    )

def error_response(message: str, code: int, details=None):
    return APIResponse(
        success=False,
        message=message,
        data=None,
        error={
            "code": code,
            "details": details
        }
    )

T = TypeVar("T")

class PaginationMeta(BaseModel):
    """
    Standard pagination metadata.
    """
    current_page: int
    page_size: int
    total_items: int
    total_pages: int
    has_next: bool
    has_previous: bool

class PaginatedResponse(BaseModel, Generic[T]):
    """
    Generic paginated response structure.
    Use this when returning lists with pagination.
    """
    success: bool = True
    message: str
    data: T
    pagination: PaginationMeta
    error: Optional[Any] = None

def paginated_success_response(
    message: str,
    items: T,
    current_page: int,
    page_size: int,
    total_items: int,
) -> PaginatedResponse[T]:
    """
    Helper to create a standardized paginated success response.

    Example usage:
        return paginated_success_response(
            message="Users retrieved successfully",
            items={"users": user_list, "counts": counts},
            current_page=pagination.page,
            page_size=pagination.per_page,
            total_items=total_count
        )
    """
    total_pages = (total_items + page_size - 1) // page_size if page_size > 0 else 0

    pagination = PaginationMeta(
        current_page=current_page,
        page_size=page_size,
        total_items=total_items,
        total_pages=total_pages,
        has_next=current_page < total_pages,
        has_previous=current_page > 1
    )

    return PaginatedResponse[T](
        success=True,
        message=message,
        data=items,
        pagination=pagination,
        error=None
    )


# =========================================================
# 🔹 ERROR RENDERING
# =========================================================

def _error_json(status_code: int, message: str, details=None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(error_response(message=message, code=status_code, details=details)),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error_json(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return _error_json(status.HTTP_400_BAD_REQUEST, "Validation error", details)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return _error_json(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
