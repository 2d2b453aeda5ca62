from __future__ import annotations


class ChatClientError(Exception):
    """Base client error.

    ``retryable`` separates transient network trouble from failures that
    will not go away by trying again.
    """

    retryable: bool = False

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class TransportError(ChatClientError):
    retryable = True


class NotConnectedError(ChatClientError):
    retryable = True


class ApiError(ChatClientError):
    def __init__(self, status_code: int, detail: str = "") -> None:
        self.status_code = status_code
        super().__init__(detail or f"HTTP {status_code}")

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return 500 <= self.status_code < 600


class UploadError(ChatClientError):
    pass


class ValidationError(ChatClientError):
    pass
