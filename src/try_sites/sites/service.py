"""Registration and confirmation of demo sites."""

import html
import logging
import re
from datetime import timedelta
from typing import Optional
from urllib.parse import urlencode

from sqlalchemy.ext.asyncio import AsyncSession

from try_sites.common.clock import Clock
from try_sites.common.exceptions import (
    RecipeNotFoundError,
    SetupError,
    TenantConflictError,
    TenantNotFoundError,
)
from try_sites.email.sender import EmailSender, MailMessage
from try_sites.protection import TimeLimitedDataProtector
from try_sites.setup.schemas import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    ADMIN_USERNAME,
    DATABASE_PROVIDER,
    SITE_NAME,
    SITE_TIME_ZONE,
    SetupContext,
)
from try_sites.setup.service import SetupService
from try_sites.shells.host import ShellHost
from try_sites.shells.schemas import ShellSettings, TenantState
from try_sites.shells.service import ShellSettingsManager
from try_sites.sites.generators import generate_random_name, generate_random_password
from try_sites.sites.schemas import (
    ConfirmationResult,
    ModelErrors,
    RegisterUserForm,
    RegistrationResult,
    RequestHostInfo,
)

logger = logging.getLogger(__name__)

PASSWORD_PURPOSE = "Password"
HANDLE_PATTERN = re.compile(r"\w+")

ACCEPT_TERMS_MESSAGE = "Please, accept the terms and conditions."
INVALID_HANDLE_MESSAGE = "Invalid tenant name. Must contain characters only and no spaces."
HANDLE_EXISTS_MESSAGE = "This site name already exists."
INVALID_RECIPE_MESSAGE = "Invalid recipe name."

EMAIL_BODY = (
    "Hello,<br><br>Your demo site '{site_name}' has been created.<br><br>"
    "1) Setup your site by opening <a href=\"{confirmation_link}\">this link</a>.<br><br>"
    "2) Log into the <a href=\"{site_url}/admin\">admin</a> with these credentials:<br>"
    "Username: {admin_name}<br>Password: {admin_password}<br><br>"
    "Note: The site will be disabled on Sunday at 10PM CET."
)


def is_valid_handle(handle: str) -> bool:
    return HANDLE_PATTERN.fullmatch(handle) is not None


def get_tenant_url(settings: ShellSettings, host_info: RequestHostInfo) -> str:
    """Absolute URL of a tenant's site root.

    The first entry of a comma-separated ``request_url_host`` overrides the
    request host; the request port is kept either way.
    """
    hosts = [h.strip() for h in (settings.request_url_host or "").split(",") if h.strip()]
    host = hosts[0] if hosts else host_info.host

    if host_info.port:
        host = f"{host}:{host_info.port}"

    result = f"{host_info.scheme}://{host}"
    if settings.request_url_prefix:
        result += "/" + settings.request_url_prefix
    return result


def build_email_body(
    site_name: str,
    confirmation_link: str,
    site_url: str,
    admin_name: str,
    admin_password: str,
) -> str:
    return EMAIL_BODY.format(
        site_name=html.escape(site_name),
        confirmation_link=html.escape(confirmation_link),
        site_url=html.escape(site_url),
        admin_name=html.escape(admin_name),
        admin_password=html.escape(admin_password),
    )


class RegistrationService:
    """Validates the registration form, provisions the tenant and emails the link."""

    def __init__(
        self,
        settings_manager: ShellSettingsManager,
        shell_host: ShellHost,
        setup_service: SetupService,
        protector: TimeLimitedDataProtector,
        email_sender: EmailSender,
        clock: Optional[Clock] = None,
        *,
        admin_username: str = "admin",
        email_subject: str = "Try your demo site",
        email_to_bcc: bool = False,
        default_sender: Optional[str] = None,
        database_provider: str = "Sqlite",
        confirmation_ttl: timedelta = timedelta(hours=24),
    ):
        self.settings_manager = settings_manager
        self.shell_host = shell_host
        self.setup_service = setup_service
        self.protector = protector
        self.email_sender = email_sender
        self.clock = clock or Clock()
        self.admin_username = admin_username
        self.email_subject = email_subject
        self.email_to_bcc = email_to_bcc
        self.default_sender = default_sender
        self.database_provider = database_provider
        self.confirmation_ttl = confirmation_ttl

    def suggest_handle(self) -> str:
        return generate_random_name()

    def _validate(self, form: RegisterUserForm) -> ModelErrors:
        errors = ModelErrors()
        if not form.accept_terms:
            errors.add("accept_terms", ACCEPT_TERMS_MESSAGE)
        if form.handle and not is_valid_handle(form.handle):
            errors.add("handle", INVALID_HANDLE_MESSAGE)
        return errors

    async def register(
        self,
        session: AsyncSession,
        form: RegisterUserForm,
        host_info: RequestHostInfo,
        confirm_url: str,
    ) -> RegistrationResult:
        """Register a demo site.

        ``confirm_url`` is the absolute URL of the confirmation endpoint; the
        query string carrying the protected password is appended to it.
        Nothing is persisted unless validation passes.
        """
        if not form.handle:
            form.handle = self.suggest_handle()

        errors = self._validate(form)
        if not errors.is_valid:
            return RegistrationResult(success=False, errors=errors)

        if await self.shell_host.try_get_settings(session, form.handle) is not None:
            errors.add("handle", HANDLE_EXISTS_MESSAGE)
            return RegistrationResult(success=False, errors=errors)

        settings = ShellSettings(
            name=form.handle,
            request_url_prefix=form.handle.lower(),
            request_url_host=None,
            state=TenantState.UNINITIALIZED,
        )
        settings["Description"] = f"{form.site_name} {form.email}"
        settings["RecipeName"] = form.recipe_name
        settings[DATABASE_PROVIDER] = self.database_provider

        try:
            await self.settings_manager.create_settings(session, settings)
        except TenantConflictError:
            errors.add("handle", HANDLE_EXISTS_MESSAGE)
            return RegistrationResult(success=False, errors=errors)
        # The tenant must be durable before its confirmation link is mailed.
        await session.commit()
        await self.shell_host.get_or_create_shell_context(settings)
        logger.info("Registered demo tenant %s (recipe %s)", settings.name, form.recipe_name)

        # An unknown recipe is reported but does not stop the confirmation email.
        recipes = await self.setup_service.get_setup_recipes()
        if not any(r.name == form.recipe_name for r in recipes):
            errors.add("recipe_name", INVALID_RECIPE_MESSAGE)
            logger.warning("Tenant %s registered with unknown recipe %r", settings.name, form.recipe_name)

        site_url = get_tenant_url(settings, host_info)
        admin_password = generate_random_password()
        encrypted_password = self.protector.protect(
            admin_password, self.clock.utc_now + self.confirmation_ttl
        )
        query = urlencode({
            "email": form.email,
            "handle": form.handle,
            "siteName": form.site_name,
            "ep": encrypted_password,
        })
        confirmation_link = f"{confirm_url}?{query}"

        message = MailMessage(
            to=form.email,
            subject=self.email_subject,
            body=build_email_body(
                form.site_name, confirmation_link, site_url, self.admin_username, admin_password
            ),
            is_html_body=True,
        )
        if self.email_to_bcc and self.default_sender:
            message.bcc = self.default_sender

        email_sent = await self.email_sender.send(message)
        if not email_sent:
            logger.warning("Confirmation email for tenant %s was not delivered", settings.name)

        return RegistrationResult(
            success=True,
            errors=errors,
            settings=settings,
            confirmation_link=confirmation_link,
            tenant_url=site_url,
            email_sent=email_sent,
        )


class ConfirmationService:
    """Runs the setup recipe when the emailed confirmation link is opened."""

    def __init__(
        self,
        shell_host: ShellHost,
        setup_service: SetupService,
        protector: TimeLimitedDataProtector,
        clock: Optional[Clock] = None,
        *,
        admin_username: str = "admin",
    ):
        self.shell_host = shell_host
        self.setup_service = setup_service
        self.protector = protector
        self.clock = clock or Clock()
        self.admin_username = admin_username

    async def confirm(
        self,
        session: AsyncSession,
        email: Optional[str],
        handle: Optional[str],
        site_name: Optional[str],
        ep: Optional[str],
    ) -> ConfirmationResult:
        """Set up the tenant named by a confirmation link.

        Raises TenantNotFoundError or RecipeNotFoundError when the link points
        nowhere, and SetupError carrying the engine's field errors.
        """
        settings = await self.shell_host.try_get_settings(session, handle or "")
        if settings is None:
            raise TenantNotFoundError(f"Tenant '{handle}' not found")

        location = "/" + settings.name
        if settings.state is not TenantState.UNINITIALIZED:
            return ConfirmationResult(location=location)

        recipes = await self.setup_service.get_setup_recipes()
        recipe = next((r for r in recipes if r.name == settings["RecipeName"]), None)
        if recipe is None:
            raise RecipeNotFoundError(f"Recipe '{settings['RecipeName']}' not found")

        credential = self.protector.try_unprotect(ep or "")
        if not credential.ok:
            logger.warning("Confirmation link for tenant %s is %s", settings.name, credential.status.value)

        context = SetupContext(
            shell_settings=settings,
            recipe=recipe,
            enabled_features=None,
            errors={},
            credential=credential,
        )
        context.properties[SITE_NAME] = site_name
        context.properties[ADMIN_USERNAME] = self.admin_username
        context.properties[ADMIN_EMAIL] = email
        context.properties[ADMIN_PASSWORD] = credential.plaintext
        context.properties[SITE_TIME_ZONE] = self.clock.get_system_time_zone_id()
        context.properties[DATABASE_PROVIDER] = settings[DATABASE_PROVIDER]

        execution_id = await self.setup_service.setup(session, context)

        if context.errors:
            raise SetupError(context.errors)

        return ConfirmationResult(location=location, execution_id=execution_id)
