import uuid
from http import HTTPStatus
from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse

from deskwise.domain.errors import ScheduleConflictError
from deskwise.domain.scheduling.timestamps import format_timestamp

PROBLEM_TYPE_VALIDATION = "https://example.com/problems/validation-error"
PROBLEM_TYPE_DOMAIN = "https://example.com/problems/domain-error"
PROBLEM_TYPE_CONFLICT = "https://example.com/problems/schedule-conflict"
PROBLEM_TYPE_NOT_FOUND = "https://example.com/problems/not-found"
PROBLEM_TYPE_SERVER = "https://example.com/problems/server-error"


def _resolve_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")
    if not request_id:
        request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    return request_id


def _resolve_title(status_code: int, fallback: str | None) -> str:
    if fallback:
        return fallback
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def _resolve_type(status_code: int, type_override: str | None) -> str:
    if type_override:
        return type_override
    if status_code == status.HTTP_422_UNPROCESSABLE_ENTITY:
        return PROBLEM_TYPE_VALIDATION
    if status_code == status.HTTP_404_NOT_FOUND:
        return PROBLEM_TYPE_NOT_FOUND
    if status_code == status.HTTP_409_CONFLICT:
        return PROBLEM_TYPE_CONFLICT
    if status_code >= 500:
        return PROBLEM_TYPE_SERVER
    return PROBLEM_TYPE_DOMAIN


def problem_details(
    request: Request,
    *,
    status: int,
    title: str | None,
    detail: str,
    errors: list[dict[str, Any]] | None = None,
    type_: str | None = None,
    headers: dict[str, str] | None = None,
    extensions: dict[str, Any] | None = None,
) -> JSONResponse:
    """Render an RFC 7807 ``application/problem+json`` response.

    ``extensions`` are merged as additional top-level members after the standard ones.
    """
    request_id = _resolve_request_id(request)
    content = {
        "type": _resolve_type(status, type_),
        "title": _resolve_title(status, title),
        "status": status,
        "detail": detail,
        "request_id": request_id,
        "errors": errors or [],
    }
    for key, value in (extensions or {}).items():
        content.setdefault(key, value)
    response = JSONResponse(
        status_code=status,
        content=content,
        headers=headers,
        media_type="application/problem+json",
    )
    response.headers.setdefault("X-Request-ID", request_id)
    return response


def schedule_conflict_problem(request: Request, exc: ScheduleConflictError) -> JSONResponse:
    """409 for a booking that overlaps existing items of the same technician.

    ``next_free_at`` is the latest end among the blocking items, the earliest start a
    retry of the same duration could succeed from.
    """
    conflicts = exc.conflicts
    next_free_at = max((item.ends_at for item in conflicts), default=None)
    return problem_details(
        request=request,
        status=status.HTTP_409_CONFLICT,
        title=exc.title,
        detail=exc.detail,
        errors=exc.errors or [],
        type_=exc.type or PROBLEM_TYPE_CONFLICT,
        extensions={
            "conflict_ids": [item.id for item in conflicts],
            "next_free_at": format_timestamp(next_free_at) if next_free_at else None,
        },
    )
