"""Tenant settings store backed by the shell_settings table."""

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from try_sites.common.exceptions import TenantConflictError
from try_sites.shells.models import ShellSettingsModel
from try_sites.shells.schemas import ShellSettings, TenantState

logger = logging.getLogger(__name__)


def _to_settings(row: ShellSettingsModel) -> ShellSettings:
    return ShellSettings(
        name=row.name,
        request_url_prefix=row.request_url_prefix,
        request_url_host=row.request_url_host,
        state=TenantState(row.state),
        properties=dict(row.properties or {}),
        created_at=row.created_at,
    )


def _apply(row: ShellSettingsModel, settings: ShellSettings) -> None:
    row.request_url_prefix = settings.request_url_prefix
    row.request_url_host = settings.request_url_host
    row.state = settings.state.value
    # Assign a fresh dict so the JSON column is flagged dirty.
    row.properties = dict(settings.properties)


class ShellSettingsManager:
    """Tenant settings persistence operations."""

    async def _get_row(
        self, session: AsyncSession, name: str
    ) -> ShellSettingsModel | None:
        result = await session.execute(
            select(ShellSettingsModel).where(
                func.lower(ShellSettingsModel.name) == name.lower()
            )
        )
        return result.scalar_one_or_none()

    async def try_get_settings(
        self, session: AsyncSession, name: str
    ) -> ShellSettings | None:
        if not name:
            return None
        row = await self._get_row(session, name)
        return _to_settings(row) if row is not None else None

    async def create_settings(
        self, session: AsyncSession, settings: ShellSettings
    ) -> ShellSettings:
        """Persist new tenant settings, failing if the name is already taken.

        Uniqueness is enforced by the database, so two concurrent
        registrations of the same name cannot both succeed. On conflict the
        session's pending work is rolled back and TenantConflictError raised.
        """
        row = ShellSettingsModel(name=settings.name)
        _apply(row, settings)
        session.add(row)
        try:
            await session.flush()
        except IntegrityError as exc:
            await session.rollback()
            logger.warning("Tenant name conflict: %s", settings.name)
            raise TenantConflictError(f"Tenant '{settings.name}' already exists") from exc
        settings.created_at = row.created_at
        return settings

    async def save_settings(
        self, session: AsyncSession, settings: ShellSettings
    ) -> ShellSettings:
        """Insert or update tenant settings by name."""
        row = await self._get_row(session, settings.name)
        if row is None:
            return await self.create_settings(session, settings)
        _apply(row, settings)
        await session.flush()
        return settings

    async def list_settings(
        self, session: AsyncSession, state: TenantState | None = None
    ) -> list[ShellSettings]:
        query = select(ShellSettingsModel).order_by(ShellSettingsModel.name)
        if state is not None:
            query = query.where(ShellSettingsModel.state == state.value)
        result = await session.execute(query)
        return [_to_settings(row) for row in result.scalars().all()]

    async def disable_stale(
        self, session: AsyncSession, older_than: datetime
    ) -> list[str]:
        """Disable demo tenants created before ``older_than``.

        Returns the names of the tenants that were disabled.
        """
        result = await session.execute(
            select(ShellSettingsModel).where(
                ShellSettingsModel.created_at < older_than,
                ShellSettingsModel.state != TenantState.DISABLED.value,
            )
        )
        rows = list(result.scalars().all())
        for row in rows:
            row.state = TenantState.DISABLED.value
        await session.flush()
        if rows:
            logger.info("Disabled %d stale tenant(s)", len(rows))
        return [row.name for row in rows]
