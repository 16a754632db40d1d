"""Setup engine: applies a recipe to an uninitialized tenant."""

import hashlib
import hmac
import json
import logging
import os
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from try_sites.common.clock import Clock
from try_sites.protection import UnprotectStatus
from try_sites.setup.recipes import RecipeCatalog, RecipeDescriptor
from try_sites.setup.schemas import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    ADMIN_USERNAME,
    DATABASE_PROVIDER,
    SITE_NAME,
    SITE_TIME_ZONE,
    SetupContext,
)
from try_sites.shells.host import ShellHost
from try_sites.shells.schemas import TenantState
from try_sites.shells.service import ShellSettingsManager

logger = logging.getLogger(__name__)

SUPPORTED_DATABASE_PROVIDERS = ("Sqlite", "Postgres", "MySql", "SqlConnection")
SITE_PROFILE_FILE = "site.json"
PBKDF2_ITERATIONS = 100_000

_REQUIRED_MESSAGES = {
    SITE_NAME: "The site name is required.",
    ADMIN_USERNAME: "The user name is required.",
    ADMIN_EMAIL: "The email is required.",
}


def hash_password(password: str, salt: Optional[bytes] = None) -> str:
    """PBKDF2-SHA256 hash in ``pbkdf2_sha256$iterations$salt$hash`` form."""
    salt = salt or os.urandom(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt.hex()}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        _, iterations, salt_hex, expected = encoded.split("$")
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), bytes.fromhex(salt_hex), int(iterations)
    )
    return hmac.compare_digest(digest.hex(), expected)


class SetupService:
    """Lists setup recipes and runs them against tenants."""

    def __init__(
        self,
        settings_manager: ShellSettingsManager,
        shell_host: ShellHost,
        catalog: RecipeCatalog,
        clock: Optional[Clock] = None,
    ):
        self.settings_manager = settings_manager
        self.shell_host = shell_host
        self.catalog = catalog
        self.clock = clock or Clock()

    async def get_setup_recipes(self) -> list[RecipeDescriptor]:
        return [r for r in self.catalog.get_recipes() if r.is_setup_recipe]

    def _validate(self, context: SetupContext) -> None:
        props = context.properties
        for key, message in _REQUIRED_MESSAGES.items():
            if not props.get(key):
                context.errors[key] = message

        if not props.get(ADMIN_PASSWORD):
            credential = context.credential
            if credential is not None and credential.status is not UnprotectStatus.VALID:
                context.errors[ADMIN_PASSWORD] = "The confirmation link is invalid or has expired."
            else:
                context.errors[ADMIN_PASSWORD] = "The password is required."

        if props.get(DATABASE_PROVIDER) not in SUPPORTED_DATABASE_PROVIDERS:
            context.errors[DATABASE_PROVIDER] = "The database provider is not supported."

    async def setup(self, session: AsyncSession, context: SetupContext) -> str:
        """Run the context's recipe. Returns an execution id.

        Problems are reported through ``context.errors``; when validation
        fails the tenant stays Uninitialized so the setup can be retried.
        """
        execution_id = uuid.uuid4().hex
        settings = context.shell_settings
        recipe = context.recipe

        self._validate(context)
        if context.errors:
            logger.warning(
                "Setup of tenant %s rejected: %s", settings.name, ", ".join(context.errors)
            )
            return execution_id

        logger.info("Setting up tenant %s with recipe %s", settings.name, recipe.name)
        settings.state = TenantState.INITIALIZING
        await self.settings_manager.save_settings(session, settings)

        props = context.properties
        features = list(context.enabled_features or recipe.features)
        try:
            shell_context = await self.shell_host.get_or_create_shell_context(settings)
            profile = {
                "site_name": props[SITE_NAME],
                "admin_username": props[ADMIN_USERNAME],
                "admin_email": props[ADMIN_EMAIL],
                "admin_password_hash": hash_password(props[ADMIN_PASSWORD]),
                "time_zone": props.get(SITE_TIME_ZONE) or self.clock.get_system_time_zone_id(),
                "database_provider": props[DATABASE_PROVIDER],
                "recipe": recipe.name,
                "features": features,
                "execution_id": execution_id,
                "set_up_at": self.clock.utc_now.isoformat(),
            }
            (shell_context.content_root / SITE_PROFILE_FILE).write_text(
                json.dumps(profile, indent=2), encoding="utf-8"
            )
        except OSError:
            logger.exception("Recipe %s failed for tenant %s", recipe.name, settings.name)
            context.errors["Recipe"] = f"Unexpected error while executing recipe '{recipe.name}'."
            settings.state = TenantState.ERROR
            await self.settings_manager.save_settings(session, settings)
            return execution_id

        settings[SITE_NAME] = props[SITE_NAME]
        settings[SITE_TIME_ZONE] = profile["time_zone"]
        settings["ExecutionId"] = execution_id
        settings.state = TenantState.RUNNING
        await self.settings_manager.save_settings(session, settings)
        logger.info("Tenant %s is running (execution %s)", settings.name, execution_id)
        return execution_id
