from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import EmailResponse


class PostmarkError(Exception):
    """Base class for every error raised by the client."""


class PayloadNotSetError(PostmarkError):
    """A required email or batch argument was ``None``; nothing was sent."""


class SerializationError(PostmarkError):
    """The payload could not be encoded to JSON; nothing was sent."""


class TransportError(PostmarkError):
    """The request could not be built or the network call failed."""


class DeserializationError(PostmarkError):
    """The response body could not be decoded into the expected shape."""


class APIError(PostmarkError):
    """Postmark answered with a 4xx/5xx status.

    ``error_code`` and ``message`` are filled from the body when Postmark sent
    its usual ``{"ErrorCode": ..., "Message": ...}`` object.
    """

    def __init__(
        self,
        status_code: int,
        error_code: Optional[int] = None,
        message: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        detail = f"HTTP {status_code}"
        if error_code is not None:
            detail += f": {error_code} {message or ''}".rstrip()
        super().__init__(detail)


class DeliveryError(PostmarkError):
    """The call succeeded but the decoded response carries a nonzero ErrorCode.

    The decoded response is kept on ``response``; callers should not discard it.
    """

    def __init__(self, response: "EmailResponse") -> None:
        self.response = response
        self.error_code = response.error_code
        self.message = response.message
        super().__init__(f"{response.error_code} {response.message}")
