from __future__ import annotations

from typing import Optional


class WorktimeError(Exception):
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self):
        payload = {"error": self.message}
        if self.field:
            payload["field"] = self.field
        return payload


class ValidationError(WorktimeError):
    pass


class InvalidDate(ValidationError):
    pass


class InvalidTime(ValidationError):
    pass


class InvalidPeriod(ValidationError):
    pass


class MissingIdentifier(ValidationError):
    pass


class NotFound(WorktimeError):
    status_code = 404


class RenderingFailure(WorktimeError):
    status_code = 502
