from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

import httpx

from .config import Settings, settings as default_settings
from .dispatch import Dispatcher, HttpClient, TokenType
from .errors import DeliveryError, PayloadNotSetError
from .models import Email, EmailResponse, EmailWithTemplate, TemplatedBatch

log = logging.getLogger(__name__)


class ClientAPI(Protocol):
    """The operations :class:`PostmarkClient` offers, for substituting fakes."""

    async def send_email(self, email: Optional[Email]) -> EmailResponse: ...

    async def send_email_batch(self, emails: Optional[Sequence[Email]]) -> List[EmailResponse]: ...

    async def send_email_with_template(self, email: Optional[EmailWithTemplate]) -> EmailResponse: ...

    async def send_batch_email_with_template(
        self, emails: Optional[Sequence[EmailWithTemplate]]
    ) -> List[EmailResponse]: ...


def build_http_client(cfg: Settings | None = None) -> httpx.AsyncClient:
    """Create an ``httpx.AsyncClient`` using the configured request timeout."""
    cfg = cfg or default_settings
    return httpx.AsyncClient(timeout=httpx.Timeout(cfg.request_timeout))


class PostmarkClient(Dispatcher):
    """Postmark email API bound to an injected HTTP client.

    Every operation is one request/response round trip; nothing is retried.
    The instance holds only its tokens and base URL, so it may be shared
    between tasks whenever the injected ``http_client`` may.
    """

    @classmethod
    def from_settings(cls, http_client: HttpClient, cfg: Settings | None = None) -> "PostmarkClient":
        cfg = cfg or default_settings
        return cls(http_client, cfg.server_token, cfg.account_token, str(cfg.base_url))

    # ---------------------------------------------------------------
    # Plain emails
    # ---------------------------------------------------------------

    async def send_email(self, email: Optional[Email]) -> EmailResponse:
        """Send a single email.

        Raises ``DeliveryError`` (holding the decoded response) when Postmark
        accepted the call but reports a nonzero ``ErrorCode``.
        """

        if email is None:
            raise PayloadNotSetError("The email object is not set")

        res = await self.perform("POST", "email", email, EmailResponse, TokenType.SERVER)
        if res.error_code != 0:
            log.warning("Postmark rejected email to %s: %s %s", res.to, res.error_code, res.message)
            raise DeliveryError(res)
        return res

    async def send_email_batch(self, emails: Optional[Sequence[Email]]) -> List[EmailResponse]:
        """Send several emails in one call.

        Responses are aligned with *emails*; each may carry its own nonzero
        ``error_code``, which callers are expected to check. Postmark caps the
        batch size; that limit is not checked here.
        """

        if emails is None:
            raise PayloadNotSetError("The emails object is not set")

        return await self.perform("POST", "email/batch", list(emails), List[EmailResponse], TokenType.SERVER)

    # ---------------------------------------------------------------
    # Templated emails
    # ---------------------------------------------------------------

    async def send_email_with_template(self, email: Optional[EmailWithTemplate]) -> EmailResponse:
        """Send an email rendered from ``template_id`` or ``template_alias``."""

        if email is None:
            raise PayloadNotSetError("The email object is not set")

        return await self.perform(
            "POST", "email/withTemplate", email.with_display_names(), EmailResponse, TokenType.SERVER
        )

    async def send_batch_email_with_template(
        self, emails: Optional[Sequence[EmailWithTemplate]]
    ) -> List[EmailResponse]:
        """Send several templated emails wrapped in a ``Messages`` envelope.

        The caller's objects are copied before display names are merged.
        """

        if emails is None:
            raise PayloadNotSetError("The emails object is not set")

        batch = TemplatedBatch(messages=[email.with_display_names() for email in emails])
        return await self.perform(
            "POST", "email/batchWithTemplates", batch, List[EmailResponse], TokenType.SERVER
        )
