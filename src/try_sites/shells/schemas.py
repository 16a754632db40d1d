"""Tenant settings as seen by the rest of the application."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional


class TenantState(str, Enum):
    UNINITIALIZED = "Uninitialized"
    INITIALIZING = "Initializing"
    RUNNING = "Running"
    DISABLED = "Disabled"
    ERROR = "Error"


@dataclass
class ShellSettings:
    """Identity, routing and free-form properties of one tenant.

    Properties are addressed by key, e.g. ``settings["RecipeName"]``;
    missing keys read as ``None``.
    """

    name: str
    request_url_prefix: Optional[str] = None
    request_url_host: Optional[str] = None
    state: TenantState = TenantState.UNINITIALIZED
    properties: dict[str, str] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def __getitem__(self, key: str) -> Optional[str]:
        return self.properties.get(key)

    def __setitem__(self, key: str, value: Optional[str]) -> None:
        self.properties[key] = value


@dataclass
class ShellContext:
    """A materialized tenant: its settings and on-disk content root."""

    settings: ShellSettings
    content_root: Path
