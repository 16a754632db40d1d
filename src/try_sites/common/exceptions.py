"""Try-Sites exception hierarchy."""

from typing import Mapping


class TrySitesError(Exception):
    """Base exception for all Try-Sites errors."""

    def __init__(self, message: str = "", code: str = "TRYSITES_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class TenantConflictError(TrySitesError):
    """Raised when a tenant with the same name is persisted concurrently."""

    def __init__(self, message: str = "Tenant already exists"):
        super().__init__(message, code="CONFLICT")


class TenantNotFoundError(TrySitesError):
    """Raised when tenant settings cannot be found."""

    def __init__(self, message: str = "Tenant not found"):
        super().__init__(message, code="NOT_FOUND")


class RecipeNotFoundError(TrySitesError):
    """Raised when a setup recipe name does not match any known recipe."""

    def __init__(self, message: str = "Recipe not found"):
        super().__init__(message, code="NOT_FOUND")


class DecryptionError(TrySitesError):
    """Raised when protected data was tampered with or protected for another purpose."""

    def __init__(self, message: str = "Unable to unprotect the payload", code: str = "DECRYPTION_FAILED"):
        super().__init__(message, code=code)


class TokenExpiredError(DecryptionError):
    """Raised when protected data is past its expiration."""

    def __init__(self, message: str = "Protected payload has expired"):
        super().__init__(message, code="TOKEN_EXPIRED")


class SetupError(TrySitesError):
    """Raised when the setup engine reports field errors."""

    def __init__(self, errors: Mapping[str, str], message: str = "Tenant setup failed"):
        self.errors = dict(errors)
        super().__init__(message, code="SETUP_FAILED")
