from __future__ import annotations

from pydantic import HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client configuration loaded from environment variables.

    Environment variables use the prefix `POSTMARK_`, e.g.
    ``POSTMARK_SERVER_TOKEN``. ``.env`` file in project root is also supported.
    """

    model_config = SettingsConfigDict(env_file=".env", env_prefix="POSTMARK_")

    # Credentials: "POSTMARK_API_TEST" is Postmark's sandbox server token
    server_token: str = "POSTMARK_API_TEST"
    account_token: str = ""

    # Root API endpoint
    base_url: HttpUrl = "https://api.postmarkapp.com"

    # Applied to the httpx transport, never by the client itself
    request_timeout: float = 10.0  # seconds


settings = Settings()  # singleton instance
