"""Runtime settings for the room status API.

Everything the service needs to reach one room mailbox lives here: the Entra
ID app registration used for the client-credentials grant, the mailbox
address, the Graph and login endpoints, and the timezone meetings are shown
in. Values come from the process environment or a local ``.env`` file and
are fixed for the life of the process.
"""

from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Room mailbox, app registration and display options.

    Field aliases are the environment variable names. Credentials and the
    mailbox are left unchecked, so a missing one shows up as a rejected token
    or calendar request. The display timezone is checked up front because
    every time range on the response depends on it.
    """

    # Entra ID app registration (client-credentials grant)
    tenant_id: Optional[str] = Field(default=None, alias="TENANT_ID")
    client_id: Optional[str] = Field(default=None, alias="CLIENT_ID")
    client_secret: Optional[str] = Field(default=None, alias="CLIENT_SECRET")
    graph_scope: str = Field(
        default="https://graph.microsoft.com/.default",
        alias="GRAPH_SCOPE",
    )

    # Room mailbox whose calendar is reported
    room_email: Optional[str] = Field(default=None, alias="ROOM_EMAIL")

    # Endpoints
    authority_url: str = Field(
        default="https://login.microsoftonline.com",
        alias="AUTHORITY_URL",
        description="Base URL of the identity provider; the tenant is appended to it.",
    )
    graph_base_url: str = Field(
        default="https://graph.microsoft.com/v1.0",
        alias="GRAPH_BASE_URL",
    )

    # Display behaviour
    timezone: str = Field(
        default="America/Toronto",
        alias="TIMEZONE",
        description="IANA timezone used for the Graph Prefer header and for rendering time ranges.",
    )
    day_window_use_display_timezone: bool = Field(
        default=False,
        alias="DAY_WINDOW_USE_DISPLAY_TIMEZONE",
        description=(
            "Compute the start/end of 'today' in the display timezone instead of "
            "the server's local timezone."
        ),
    )

    # Server
    port: int = Field(default=8000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown IANA timezone: {value!r}") from None
        return value

    class Config:
        env_file = ".env"
        extra = "ignore"


# Instantiate settings at module import time. Credentials are read once per
# process; a recycled serverless instance picks up new values on cold start.
settings = Settings()
