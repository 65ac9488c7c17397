"""
errors.py — Typed failures raised inside the companion pipeline.

Every failure carries one of the closed ErrorCode values plus the HTTP
status it maps to. CompanionPipeline converts them into response bodies at
its boundary; route handlers never see them.
"""

from typing import Optional

from app.models.companion import ErrorCode


class CompanionFailure(Exception):
    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.headers = headers or {}

    def __repr__(self) -> str:
        return f"CompanionFailure({self.code.value}, {self.status_code}, {self.message!r})"
