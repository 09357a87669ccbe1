# service_nexus/app/validation.py
"""Pre-flight checks run before a connectivity test.

The service's ``type`` string is mapped onto a :class:`ServiceKind`, and
each kind has one rule in ``RULES``. Kinds without a dedicated rule only
need a URL.
"""
from typing import Callable

from . import connection_utils
from .exceptions import ServiceValidationError
from .schemas import ServiceBase, ServiceKind, ValidationResult

Rule = Callable[[ServiceBase], ValidationResult]


def _invalid(message: str) -> ValidationResult:
    return ValidationResult(is_valid=False, message=message)


def _validate_postgres(service: ServiceBase) -> ValidationResult:
    # A connection string wins over the individual fields
    if service.connection_string:
        result = connection_utils.validate_postgres_connection_string(service.connection_string)
        return ValidationResult(is_valid=result.is_valid, message=result.message)

    if not service.url:
        return _invalid("Server hostname is required for PostgreSQL connection")
    if not service.database:
        return _invalid("Database name is required for PostgreSQL connection")
    if not service.username:
        # Some setups authenticate without a username, so this only warns
        return ValidationResult(
            is_valid=True,
            message="Warning: Username is missing. Connection might fail if authentication is required.",
        )
    return ValidationResult(is_valid=True, message="Valid connection details")


def _validate_rest_api(service: ServiceBase) -> ValidationResult:
    if not service.url:
        return _invalid("REST API endpoint URL is required")
    return connection_utils.validate_rest_api_endpoint(service.url)


def _validate_auth_service(service: ServiceBase) -> ValidationResult:
    if not service.url:
        return _invalid("Auth service endpoint URL is required")
    return connection_utils.validate_auth_endpoint(service.url)


def _validate_url_present(service: ServiceBase) -> ValidationResult:
    if not service.url:
        return _invalid(f"URL is required for {service.type} service")
    return ValidationResult(is_valid=True, message="Valid service details")


RULES: dict[ServiceKind, Rule] = {
    ServiceKind.postgres: _validate_postgres,
    ServiceKind.rest_api: _validate_rest_api,
    ServiceKind.auth_service: _validate_auth_service,
    ServiceKind.storage: _validate_url_present,
    ServiceKind.hosting: _validate_url_present,
    ServiceKind.other: _validate_url_present,
}


def validate_service(service: ServiceBase) -> ValidationResult:
    """Runs the rule registered for the service's kind."""
    rule = RULES[ServiceKind.from_type(service.type)]
    return rule(service)


def ensure_valid(service: ServiceBase) -> ValidationResult:
    """Like :func:`validate_service` but raises on failure."""
    result = validate_service(service)
    if not result.is_valid:
        raise ServiceValidationError(result.message, service_id=getattr(service, "id", None))
    return result
