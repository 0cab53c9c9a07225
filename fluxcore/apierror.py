"""Errors carrying the HTTP status of a failed API call."""

from __future__ import annotations


class APIError(Exception):
    """A non-2xx response from an API."""

    def __init__(self, status_code: int = 0, status: str = "", body: str = "") -> None:
        self.status_code = status_code
        self.status = status
        self.body = body
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"{self.status} ({self.body})"

    def is_unavailable(self) -> bool:
        """Whether the service is unavailable (502, 503 or 504)."""
        return self.status_code in (502, 503, 504)

    def is_missing(self) -> bool:
        """Whether the API call does not exist on the server."""
        return self.status_code == 404