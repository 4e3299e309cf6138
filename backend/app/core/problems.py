"""
RFC 7807 problem-detail responses.

DomainError kinds map to HTTP statuses here and nowhere else:
NOT_FOUND -> 404, INVALID_INPUT and the duplicate kinds -> 400,
everything else -> 500.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import DomainError, ErrorKind

logger = logging.getLogger(__name__)

PROBLEM_CONTENT_TYPE = "application/problem+json"

TYPE_VALIDATION_ERROR = "https://api.accounting.app/problems/validation-error"
TYPE_NOT_FOUND = "https://api.accounting.app/problems/not-found"
TYPE_INTERNAL_ERROR = "https://api.accounting.app/problems/internal-error"
TYPE_METHOD_NOT_ALLOWED = "https://api.accounting.app/problems/method-not-allowed"
TYPE_BAD_REQUEST = "https://api.accounting.app/problems/bad-request"

INTERNAL_ERROR_DETAIL = "An unexpected error occurred. Please try again later."

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.DUPLICATE_EMAIL: 400,
    ErrorKind.DUPLICATE_ACCOUNT: 400,
}


def problem_response(
    status: int,
    title: str,
    problem_type: str,
    instance: str,
    detail: Optional[str] = None,
    errors: Optional[List[Dict[str, str]]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {
        "type": problem_type,
        "title": title,
        "status": status,
    }
    if detail:
        body["detail"] = detail
    if instance:
        body["instance"] = instance
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status, content=body, media_type=PROBLEM_CONTENT_TYPE)


def validation_problem(instance: str, errors: List[Dict[str, str]]) -> JSONResponse:
    detail = "One or more validation errors occurred."
    if len(errors) == 1:
        detail = f"Validation failed: {errors[0]['message']}"
    return problem_response(400, "Validation Error", TYPE_VALIDATION_ERROR, instance, detail, errors)


def internal_error_problem(instance: str) -> JSONResponse:
    return problem_response(500, "Internal Server Error", TYPE_INTERNAL_ERROR, instance, INTERNAL_ERROR_DETAIL)


def _field_name(loc: tuple) -> str:
    # ("body", "amount") -> "amount", ("path", "account_id") -> "account_id"
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or "body"


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    instance = request.url.path
    status = STATUS_BY_KIND.get(exc.kind, 500)

    if status == 404:
        return problem_response(404, "Not Found", TYPE_NOT_FOUND, instance, exc.message)
    if exc.kind == ErrorKind.INVALID_INPUT:
        return validation_problem(instance, [{"field": exc.field, "message": exc.reason}])
    if status == 400:
        return problem_response(400, "Validation Error", TYPE_VALIDATION_ERROR, instance, exc.message)

    logger.error(f"{request.method} {instance} failed: {exc.message}")
    return internal_error_problem(instance)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for err in exc.errors():
        if err.get("type") == "json_invalid":
            return problem_response(400, "Bad Request", TYPE_BAD_REQUEST, request.url.path, "invalid request body")
        msg = err.get("msg", "is invalid")
        # pydantic prefixes messages raised from validators with "Value error, "
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        errors.append({"field": _field_name(tuple(err.get("loc", ()))), "message": msg})
    return validation_problem(request.url.path, errors)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    instance = request.url.path
    if exc.status_code == 404:
        return problem_response(404, "Not Found", TYPE_NOT_FOUND, instance, str(exc.detail))
    if exc.status_code == 405:
        return problem_response(
            405, "Method Not Allowed", TYPE_METHOD_NOT_ALLOWED, instance,
            "The HTTP method is not allowed for this endpoint.",
        )
    if exc.status_code >= 500:
        return internal_error_problem(instance)
    return problem_response(exc.status_code, "Bad Request", TYPE_BAD_REQUEST, instance, str(exc.detail))


def register_problem_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
