from fastapi import HTTPException
from pydantic import BaseModel
from typing import Optional


class ProblemDetail(BaseModel):
    """RFC 7807 compliant error response."""

    type: str = "about:blank"
    title: str
    detail: Optional[str] = None
    status: int
    instance: Optional[str] = None
    code: str


class DomainException(Exception):
    """Base class for domain-specific exceptions."""

    def __init__(
        self,
        status_code: int,
        title: str,
        *,
        code: str,
        detail: str | None = None,
        type_: str = "about:blank",
    ) -> None:
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type = type_
        self.code = code


class MatchNotFound(DomainException):
    def __init__(self, match_id: str) -> None:
        super().__init__(
            status_code=404,
            title="Match not found",
            detail=f"match '{match_id}' not found",
            code="match_not_found",
        )


class MatchAlreadyExists(DomainException):
    def __init__(self, feed_match_id: str) -> None:
        super().__init__(
            status_code=409,
            title="Match exists",
            detail=f"feed match '{feed_match_id}' is already loaded",
            code="match_exists",
        )


class TableBusy(DomainException):
    def __init__(self, table: int, active_match_id: str) -> None:
        super().__init__(
            status_code=409,
            title="Table busy",
            detail=f"table {table} already has match '{active_match_id}' in progress",
            code="table_busy",
        )
        self.active_match_id = active_match_id


class MatchVersionConflict(DomainException):
    def __init__(self, match_id: str, expected: int, actual: int) -> None:
        super().__init__(
            status_code=409,
            title="Match changed",
            detail=(
                f"match '{match_id}' is at version {actual}, "
                f"request expected {expected}"
            ),
            code="match_version_conflict",
        )


def http_problem(
    status_code: int,
    detail: str,
    code: str,
    *,
    headers: Optional[dict[str, str]] = None,
) -> HTTPException:
    """Create an HTTPException with an attached problem code."""

    exc = HTTPException(status_code=status_code, detail=detail, headers=headers)
    setattr(exc, "code", code)
    return exc
