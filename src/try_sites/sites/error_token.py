"""Signed transport of setup errors across the redirect to the error page."""

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

MAX_AGE = 3600  # 1 hour


def _get_serializer() -> URLSafeTimedSerializer:
    from try_sites.common.config import get_settings
    return URLSafeTimedSerializer(get_settings().secret_key, salt="setup-errors")


def dump_errors(errors: dict[str, str]) -> str:
    """Sign the setup errors and return a query-string-safe token."""
    return _get_serializer().dumps(errors)


def load_errors(token: str | None) -> dict[str, str]:
    """Verify and decode an errors token. Returns {} when missing or invalid."""
    if not token:
        return {}
    try:
        data = _get_serializer().loads(token, max_age=MAX_AGE)
    except (BadSignature, SignatureExpired):
        return {}
    return data if isinstance(data, dict) else {}
