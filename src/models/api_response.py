# src/models/api_response.py

"""Uniform success/failure envelope returned by the boundary service."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ApiResponse:
    """Envelope carrying {statusCode, payload, message}.

    Failure envelopes never carry a payload.
    """

    status_code: int
    message: str
    payload: dict[str, Any] = field(
        default_factory=lambda: dict[str, Any]()
    )

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    @classmethod
    def success(
        cls,
        message: str,
        payload: dict[str, Any] | None = None,
        status_code: int = 200,
    ) -> "ApiResponse":
        return cls(
            status_code=status_code,
            message=message,
            payload=payload or {},
        )

    @classmethod
    def failure(cls, status_code: int, message: str) -> "ApiResponse":
        return cls(status_code=status_code, message=message)

    def to_dict(self) -> dict[str, Any]:
        if not self.ok:
            return {"statusCode": self.status_code, "message": self.message}
        return {
            "statusCode": self.status_code,
            "payload": self.payload,
            "message": self.message,
        }
