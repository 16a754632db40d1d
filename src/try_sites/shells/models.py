"""SQLAlchemy model for tenant (shell) settings."""

from sqlalchemy import JSON, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from try_sites.common.models import Base, TimestampMixin, generate_uuid


class ShellSettingsModel(Base, TimestampMixin):
    __tablename__ = "shell_settings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    request_url_prefix: Mapped[str | None] = mapped_column(String(100), nullable=True)
    request_url_host: Mapped[str | None] = mapped_column(String(255), nullable=True)
    state: Mapped[str] = mapped_column(String(20), nullable=False, default="Uninitialized")
    properties: Mapped[dict] = mapped_column(JSON, default=dict)


# Tenant names are case-insensitive: "acme" and "ACME" share a URL prefix.
Index(
    "uq_shell_settings_name_lower",
    func.lower(ShellSettingsModel.name),
    unique=True,
)
