from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Postmark timestamps carry 7 fractional digits; datetime stops at 6.
_EXTRA_FRACTION = re.compile(r"(\.\d{6})\d+")


def format_address(name: str, address: str) -> str:
    """Return ``"name" address``, the display-name form Postmark accepts.

    Backslashes and double quotes inside *name* are backslash-escaped.
    """
    quoted = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{quoted}" {address}'


class WireModel(BaseModel):
    """Base for payloads exchanged with Postmark using its capitalized names."""

    # NaN/Infinity survive to_wire() so the encoder can reject them.
    model_config = ConfigDict(populate_by_name=True, ser_json_inf_nan="constants")

    def to_wire(self) -> Dict[str, Any]:
        """Dump by alias, omitting every field still at its default."""
        return json.loads(self.model_dump_json(by_alias=True, exclude_defaults=True))


class Header(WireModel):
    name: str = Field(alias="Name")
    value: str = Field(alias="Value")


class Attachment(WireModel):
    """Encoded file sent along with an email; validated by Postmark only."""

    name: str = Field(alias="Name")
    content: str = Field(alias="Content")  # base64
    content_type: str = Field(alias="ContentType")
    content_id: Optional[str] = Field(default=None, alias="ContentID")  # cid for inline images

    @field_validator("content_id", mode="after")
    def _blank_to_none(cls, v):  # noqa: N805
        return v or None


class _MessageFields(WireModel):
    """Address, header and attachment fields shared by every outbound message."""

    from_: Optional[str] = Field(default=None, alias="From")
    # Comma separated, max 50 addresses per field
    to: Optional[str] = Field(default=None, alias="To")
    cc: Optional[str] = Field(default=None, alias="Cc")
    bcc: Optional[str] = Field(default=None, alias="Bcc")
    tag: Optional[str] = Field(default=None, alias="Tag")
    reply_to: Optional[str] = Field(default=None, alias="ReplyTo")
    headers: Optional[List[Header]] = Field(default=None, alias="Headers")
    track_opens: bool = Field(default=False, alias="TrackOpens")
    attachments: Optional[List[Attachment]] = Field(default=None, alias="Attachments")
    metadata: Optional[Dict[str, str]] = Field(default=None, alias="Metadata")

    # Empty strings and collections are left off the wire just like unset ones.
    @field_validator("cc", "bcc", "tag", "reply_to", "headers", "attachments", "metadata", mode="after")
    def _empty_to_none(cls, v):  # noqa: N805
        return v or None


class Email(_MessageFields):
    """A plain email. One of ``html_body`` / ``text_body`` is expected."""

    from_: str = Field(alias="From")
    to: str = Field(alias="To")
    subject: Optional[str] = Field(default=None, alias="Subject")
    html_body: Optional[str] = Field(default=None, alias="HtmlBody")
    text_body: Optional[str] = Field(default=None, alias="TextBody")

    @field_validator("subject", "html_body", "text_body", mode="after")
    def _blank_body_to_none(cls, v):  # noqa: N805
        return v or None


class EmailWithTemplate(_MessageFields):
    """An email rendered server-side from a template id or alias.

    ``from_name`` and ``to_name`` never reach the wire as such: they are merged
    into ``From`` / ``To`` by :meth:`with_display_names` before sending.
    """

    template_id: Optional[int] = Field(default=None, alias="TemplateId")
    template_alias: Optional[str] = Field(default=None, alias="TemplateAlias")
    template_model: Optional[Dict[str, Any]] = Field(default=None, alias="TemplateModel")
    # Postmark inlines CSS unless told otherwise, so an explicit False is sent.
    inline_css: Optional[bool] = Field(default=None, alias="InlineCss")

    from_name: Optional[str] = Field(default=None, exclude=True)
    to_name: Optional[str] = Field(default=None, exclude=True)

    @field_validator("from_", "to", "template_alias", "template_model", mode="after")
    def _empty_template_field_to_none(cls, v):  # noqa: N805
        return v or None

    def with_display_names(self) -> "EmailWithTemplate":
        """Return a copy whose addresses embed the display-name overrides.

        A name with no address to attach to is dropped.
        """
        update: Dict[str, Any] = {"from_name": None, "to_name": None}
        if self.from_name is not None and self.from_ is not None:
            update["from_"] = format_address(self.from_name, self.from_)
        if self.to_name is not None and self.to is not None:
            update["to"] = format_address(self.to_name, self.to)
        return self.model_copy(update=update, deep=True)


class TemplatedBatch(WireModel):
    """Envelope expected by the batch-with-templates endpoint."""

    messages: List[EmailWithTemplate] = Field(alias="Messages")


class EmailResponse(WireModel):
    """Outcome of one submitted email.

    A successful HTTP call can still carry a nonzero ``error_code``.
    """

    to: str = Field(default="", alias="To")
    submitted_at: Optional[datetime] = Field(default=None, alias="SubmittedAt")
    message_id: str = Field(default="", alias="MessageID")
    error_code: int = Field(default=0, alias="ErrorCode")
    message: str = Field(default="", alias="Message")

    @field_validator("submitted_at", mode="before")
    def _trim_fraction(cls, v):  # noqa: N805
        if isinstance(v, str):
            return _EXTRA_FRACTION.sub(r"\1", v)
        return v
