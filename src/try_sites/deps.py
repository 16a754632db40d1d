"""Dependency injection singletons for Try-Sites."""

from datetime import timedelta

from try_sites.common.clock import Clock
from try_sites.common.config import get_settings
from try_sites.common.database import DatabaseManager
from try_sites.email.sender import EmailSender
from try_sites.protection import DataProtectionProvider, TimeLimitedDataProtector
from try_sites.setup.recipes import RecipeCatalog
from try_sites.setup.service import SetupService
from try_sites.shells.host import ShellHost
from try_sites.shells.service import ShellSettingsManager
from try_sites.sites.service import PASSWORD_PURPOSE, ConfirmationService, RegistrationService

_db: DatabaseManager | None = None
_clock: Clock | None = None
_settings_manager: ShellSettingsManager | None = None
_shell_host: ShellHost | None = None
_setup: SetupService | None = None
_protector: TimeLimitedDataProtector | None = None
_email: EmailSender | None = None
_registration: RegistrationService | None = None
_confirmation: ConfirmationService | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_clock() -> Clock:
    global _clock
    if _clock is None:
        _clock = Clock(get_settings().site_time_zone)
    return _clock


def get_settings_manager() -> ShellSettingsManager:
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = ShellSettingsManager()
    return _settings_manager


def get_shell_host() -> ShellHost:
    global _shell_host
    if _shell_host is None:
        _shell_host = ShellHost(get_settings_manager(), get_settings().shells_root)
    return _shell_host


def get_setup_service() -> SetupService:
    global _setup
    if _setup is None:
        _setup = SetupService(
            get_settings_manager(),
            get_shell_host(),
            RecipeCatalog(get_settings().recipes_dir or None),
            clock=get_clock(),
        )
    return _setup


def get_protector() -> TimeLimitedDataProtector:
    global _protector
    if _protector is None:
        provider = DataProtectionProvider(get_settings().secret_key, clock=get_clock())
        _protector = provider.create_protector(PASSWORD_PURPOSE)
    return _protector


def get_email_sender() -> EmailSender:
    global _email
    if _email is None:
        settings = get_settings()
        _email = EmailSender(
            provider=settings.email_provider,
            api_key=settings.email_api_key,
            from_email=settings.default_sender,
            from_name=settings.from_name,
        )
    return _email


def get_registration_service() -> RegistrationService:
    global _registration
    if _registration is None:
        settings = get_settings()
        _registration = RegistrationService(
            get_settings_manager(),
            get_shell_host(),
            get_setup_service(),
            get_protector(),
            get_email_sender(),
            clock=get_clock(),
            admin_username=settings.admin_username,
            email_subject=settings.email_subject,
            email_to_bcc=settings.email_to_bcc,
            default_sender=settings.default_sender,
            database_provider=settings.database_provider,
            confirmation_ttl=timedelta(hours=settings.confirmation_ttl_hours),
        )
    return _registration


def get_confirmation_service() -> ConfirmationService:
    global _confirmation
    if _confirmation is None:
        _confirmation = ConfirmationService(
            get_shell_host(),
            get_setup_service(),
            get_protector(),
            clock=get_clock(),
            admin_username=get_settings().admin_username,
        )
    return _confirmation


def set_email_sender(sender: EmailSender) -> None:
    """Replace the email sender (tests, alternative transports).

    Services built before the call keep their previous sender.
    """
    global _email, _registration
    _email = sender
    _registration = None


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _clock, _settings_manager, _shell_host, _setup, _protector
    global _email, _registration, _confirmation
    _db = None
    _clock = None
    _settings_manager = None
    _shell_host = None
    _setup = None
    _protector = None
    _email = None
    _registration = None
    _confirmation = None
