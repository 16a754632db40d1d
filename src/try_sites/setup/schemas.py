"""Setup context passed to the setup engine for one tenant."""

from dataclasses import dataclass, field
from typing import Any, Optional

from try_sites.protection import UnprotectResult
from try_sites.setup.recipes import RecipeDescriptor
from try_sites.shells.schemas import ShellSettings

# ── Setup property names ──
SITE_NAME = "SiteName"
ADMIN_USERNAME = "AdminUsername"
ADMIN_EMAIL = "AdminEmail"
ADMIN_PASSWORD = "AdminPassword"
SITE_TIME_ZONE = "SiteTimeZone"
DATABASE_PROVIDER = "DatabaseProvider"


@dataclass
class SetupContext:
    shell_settings: ShellSettings
    recipe: RecipeDescriptor
    enabled_features: Optional[list[str]] = None
    errors: dict[str, str] = field(default_factory=dict)
    properties: dict[str, Any] = field(default_factory=dict)
    # Outcome of reading the admin password from the confirmation link.
    credential: Optional[UnprotectResult] = None
