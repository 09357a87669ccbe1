# service_nexus/app/connection_utils.py
"""Helpers for PostgreSQL connection strings and Supabase-style endpoints.

Everything here is pure: no I/O, no logging. Endpoint checks are plain
substring tests on the URL, not path parsing.
"""
import re

from .schemas import ConnectionStringValidation, SupabaseEndpoints, ValidationResult

POSTGRESQL_PREFIX = "postgresql://"
POSTGRES_TYPO_PREFIX = "postgres://"

_SCHEME_RE = re.compile(r"^https?://")


def validate_postgres_connection_string(connection_string: str | None) -> ConnectionStringValidation:
    """Checks the ``postgresql://`` prefix.

    ``postgres://`` is accepted and rewritten to ``postgresql://`` in
    ``corrected_string``; any other string comes back unchanged.
    """
    if not connection_string:
        return ConnectionStringValidation(
            is_valid=False,
            message="Connection string is empty",
            corrected_string=connection_string or "",
        )

    if connection_string.startswith(POSTGRESQL_PREFIX):
        return ConnectionStringValidation(
            is_valid=True,
            message="Valid connection string",
            corrected_string=connection_string,
        )

    if connection_string.startswith(POSTGRES_TYPO_PREFIX):
        return ConnectionStringValidation(
            is_valid=True,
            message="Fixed 'postgres://' to 'postgresql://'",
            corrected_string=POSTGRESQL_PREFIX + connection_string[len(POSTGRES_TYPO_PREFIX):],
        )

    return ConnectionStringValidation(
        is_valid=False,
        message="Connection string should start with postgresql://",
        corrected_string=connection_string,
    )


def build_postgres_connection_string(
    url: str | None,
    database: str | None,
    username: str | None = None,
    password: str | None = None,
    port: int | str | None = None,
    ssl_mode: str | None = None,
) -> str:
    """Assembles ``postgresql://[user[:password]@]host[:port]/database[?sslmode=mode]``.

    Returns an empty string when the host or database is missing. The
    password is only emitted alongside a username.
    """
    if not url or not database:
        return ""

    auth_part = ""
    if username:
        auth_part = f"{username}:{password}@" if password else f"{username}@"
    port_part = f":{port}" if port else ""
    ssl_part = f"?sslmode={getattr(ssl_mode, 'value', ssl_mode)}" if ssl_mode else ""

    return f"{POSTGRESQL_PREFIX}{auth_part}{url}{port_part}/{database}{ssl_part}"


def _validate_endpoint(endpoint: str | None, label: str, fragment: str) -> ValidationResult:
    if not endpoint:
        return ValidationResult(is_valid=False, message=f"{label} endpoint is empty")
    if fragment not in endpoint:
        return ValidationResult(is_valid=False, message=f"{label} endpoint should include '{fragment}' path")
    return ValidationResult(is_valid=True, message=f"Valid {label} endpoint")


def validate_rest_api_endpoint(endpoint: str | None) -> ValidationResult:
    return _validate_endpoint(endpoint, "REST API", "/rest")


def validate_auth_endpoint(endpoint: str | None) -> ValidationResult:
    return _validate_endpoint(endpoint, "Auth", "/auth")


def validate_storage_endpoint(endpoint: str | None) -> ValidationResult:
    return _validate_endpoint(endpoint, "Storage", "/storage")


def validate_functions_endpoint(endpoint: str | None) -> ValidationResult:
    return _validate_endpoint(endpoint, "Functions", "/functions")


def strip_scheme(url: str) -> str:
    """Removes one leading ``http://`` or ``https://``."""
    return _SCHEME_RE.sub("", url, count=1)


def build_supabase_endpoints(base_url: str | None) -> SupabaseEndpoints | None:
    """Derives the sub-service endpoints of a Supabase host.

    A leading ``http://`` or ``https://`` is stripped and the results always
    use ``http://``.
    """
    if not base_url:
        return None

    host = strip_scheme(base_url)
    root = f"http://{host}"
    return SupabaseEndpoints(
        rest_api_endpoint=f"{root}/rest/v1",
        auth_endpoint=f"{root}/auth/v1",
        auth_health_endpoint=f"{root}/auth/v1/health",
        storage_endpoint=f"{root}/storage/v1",
        functions_endpoint=f"{root}/functions/v1",
    )
