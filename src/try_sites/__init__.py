"""Try-Sites: self-service demo tenants for a multi-tenant CMS."""

from try_sites.sites.generators import PasswordOptions, generate_random_name, generate_random_password
from try_sites.sites.service import get_tenant_url

__all__ = [
    "PasswordOptions",
    "generate_random_name",
    "generate_random_password",
    "get_tenant_url",
]
__version__ = "0.1.0"
