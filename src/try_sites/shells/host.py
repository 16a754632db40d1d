"""Tenant host: resolves tenant settings and materializes tenant contexts."""

import logging
from datetime import datetime
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession

from try_sites.shells.schemas import ShellContext, ShellSettings
from try_sites.shells.service import ShellSettingsManager

logger = logging.getLogger(__name__)


class ShellHost:
    """Keeps one ShellContext per tenant name."""

    def __init__(self, settings_manager: ShellSettingsManager, shells_root: str | Path):
        self.settings_manager = settings_manager
        self.shells_root = Path(shells_root)
        self._contexts: dict[str, ShellContext] = {}

    async def try_get_settings(
        self, session: AsyncSession, name: str
    ) -> ShellSettings | None:
        return await self.settings_manager.try_get_settings(session, name)

    async def get_or_create_shell_context(self, settings: ShellSettings) -> ShellContext:
        """Return the tenant's context, creating its content root on first use."""
        context = self._contexts.get(settings.name)
        if context is not None:
            context.settings = settings
            return context

        content_root = self.shells_root / settings.name
        content_root.mkdir(parents=True, exist_ok=True)
        context = ShellContext(settings=settings, content_root=content_root)
        self._contexts[settings.name] = context
        logger.info("Materialized tenant %s at %s", settings.name, content_root)
        return context

    def release_shell_context(self, name: str) -> None:
        self._contexts.pop(name, None)

    async def disable_stale(self, session: AsyncSession, older_than: datetime) -> list[str]:
        """Disable stale tenants and drop their cached contexts."""
        names = await self.settings_manager.disable_stale(session, older_than)
        for name in names:
            self.release_shell_context(name)
        return names
