"""Form, request and result types for the demo-site flow."""

from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel
from starlette.requests import Request

from try_sites.shells.schemas import ShellSettings


class RegisterUserForm(BaseModel):
    handle: str = ""
    site_name: str = ""
    email: str = ""
    recipe_name: str = ""
    accept_terms: bool = False


@dataclass(frozen=True)
class RequestHostInfo:
    """Scheme, host and port of the incoming request."""

    scheme: str
    host: str
    port: Optional[int] = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestHostInfo":
        url = request.url
        host = url.hostname or ""
        # urlsplit drops the brackets around IPv6 literals.
        if ":" in host:
            host = f"[{host}]"
        return cls(scheme=url.scheme, host=host, port=url.port)


class ModelErrors(dict):
    """Field name -> list of messages, in insertion order."""

    def add(self, key: str, message: str) -> None:
        self.setdefault(key, []).append(message)

    @property
    def is_valid(self) -> bool:
        return not self

    def messages(self) -> list[str]:
        return [m for messages in self.values() for m in messages]


@dataclass
class RegistrationResult:
    success: bool
    errors: ModelErrors = field(default_factory=ModelErrors)
    settings: Optional[ShellSettings] = None
    confirmation_link: Optional[str] = None
    tenant_url: Optional[str] = None
    email_sent: bool = False


@dataclass
class ConfirmationResult:
    """Where to send the browser after a confirmation link was opened."""

    location: str
    execution_id: Optional[str] = None
