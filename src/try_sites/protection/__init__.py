"""Time-limited data protection for confirmation links."""

from try_sites.protection.protector import (
    DataProtectionProvider,
    TimeLimitedDataProtector,
    UnprotectResult,
    UnprotectStatus,
)

__all__ = [
    "DataProtectionProvider",
    "TimeLimitedDataProtector",
    "UnprotectResult",
    "UnprotectStatus",
]
