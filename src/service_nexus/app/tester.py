# service_nexus/app/tester.py
"""Simulated connectivity checks.

No network traffic happens here: a check waits for a fixed delay and then
succeeds with a per-kind probability. The Supabase suite runs the same kind
of simulation for each endpoint derived from one host.
"""
import logging
import random
import time
from typing import Callable

from . import connection_utils, crud, schemas
from .schemas import ServiceKind
from .storage import KeyValueStore
from .validation import ensure_valid
from ..config import SERVICES_STORAGE_KEY, SIMULATED_SUITE_DELAY_SCALE, SIMULATED_TEST_DELAY

logger = logging.getLogger(__name__)

SUCCESS_RATES = {
    ServiceKind.postgres: 0.8,
    ServiceKind.rest_api: 0.7,
    ServiceKind.auth_service: 0.75,
}
DEFAULT_SUCCESS_RATE = 0.6

# (success message, failure message)
_MESSAGES = {
    ServiceKind.postgres: ("Successfully connected to {name} database", "Failed to connect: database connection refused"),
    ServiceKind.rest_api: ("Successfully connected to {name} REST endpoint", "Failed: REST API returned 403 Forbidden"),
    ServiceKind.auth_service: ("Auth service health check successful", "Auth service health check failed"),
}
_DEFAULT_MESSAGES = ("Successfully connected to {name}", "Failed to connect to {name}")


def simulate_service_test(
    service: schemas.ServiceBase,
    rng: random.Random | None = None,
    delay: float = SIMULATED_TEST_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[bool, str]:
    """Returns ``(success, message)`` after sleeping ``delay`` seconds."""
    rng = rng or random.Random()
    kind = ServiceKind.from_type(service.type)

    if delay > 0:
        sleep(delay)

    success = rng.random() < SUCCESS_RATES.get(kind, DEFAULT_SUCCESS_RATE)
    ok_message, failed_message = _MESSAGES.get(kind, _DEFAULT_MESSAGES)
    message = (ok_message if success else failed_message).format(name=service.name)
    return success, message


def run_connection_check(
    store: KeyValueStore,
    service_id: str,
    *,
    key: str = SERVICES_STORAGE_KEY,
    rng: random.Random | None = None,
    delay: float = SIMULATED_TEST_DELAY,
    sleep: Callable[[float], None] = time.sleep,
    clock: crud.Clock = crud.utcnow,
) -> schemas.ConnectionTestResult | None:
    """Validates, simulates and records a check for one service.

    Returns None for an unknown id. Raises ``ServiceValidationError`` before
    anything is recorded when the service fails validation. The test time is
    recorded whether the simulated check succeeds or not.
    """
    service = crud.get_service_by_id(store, service_id, key=key)
    if service is None:
        return None

    ensure_valid(service)

    logger.info(f"Checking connection for {service.type} service '{service.name}' ({service.id})")
    success, message = simulate_service_test(service, rng=rng, delay=delay, sleep=sleep)
    if success:
        logger.info(message)
    else:
        logger.warning(message)

    recorded = crud.record_service_test(store, service_id, key=key, clock=clock)
    if recorded is None:
        # Deleted by another writer while the check was running
        logger.warning(f"Service {service_id} disappeared before its test could be recorded")

    return schemas.ConnectionTestResult(
        service_id=service.id,
        service=service.name,
        success=success,
        message=message,
        last_tested=recorded.last_tested if recorded else None,
    )


# (name, seconds of simulated latency at delay scale 1.0)
_SUITE_STEPS = (
    ("PostgreSQL Database", 0.8),
    ("REST API (PostgREST)", 0.6),
    ("Auth Service", 0.7),
    ("Storage Service", 0.5),
    ("Edge Functions", 0.9),
)


def _suite_outcome(name: str, rng: random.Random) -> tuple[schemas.SuiteStatus, str, str]:
    if name == "REST API (PostgREST)":
        if rng.random() > 0.3:
            return (schemas.SuiteStatus.success, "Successfully connected to REST API",
                    "Connected to PostgREST service. API version: 11.1.0")
        return (schemas.SuiteStatus.error, "Failed to connect to REST API",
                "Connection failed with status 403. Check API key and permissions.")
    if name == "Storage Service":
        if rng.random() > 0.5:
            return (schemas.SuiteStatus.warning, "Storage service connected with warnings",
                    "Connection established but disk usage is high (85% capacity)")
        return (schemas.SuiteStatus.success, "Successfully connected to Storage service",
                "Storage service is healthy and operating normally.")
    if name == "Auth Service":
        return (schemas.SuiteStatus.success, "Auth service is healthy",
                "Health check passed. Service is running normally.")
    if name == "Edge Functions":
        return (schemas.SuiteStatus.success, "Edge Functions service is accessible",
                "Successfully connected to Edge Functions service.")
    return (schemas.SuiteStatus.success, "Successfully connected to PostgreSQL database",
            "Connection established to PostgreSQL server running on port 5432")


def simulate_supabase_suite(
    base_url: str,
    rng: random.Random | None = None,
    delay: float = SIMULATED_SUITE_DELAY_SCALE,
    sleep: Callable[[float], None] = time.sleep,
) -> schemas.SuiteResult | None:
    """Simulates checks of every sub-service of a Supabase host.

    Endpoints are derived from ``base_url`` and checked with their validators
    first; an endpoint that fails its validator is reported as an error
    without being simulated. Returns None when no endpoints can be derived.
    """
    endpoints = connection_utils.build_supabase_endpoints(base_url)
    if endpoints is None:
        return None
    rng = rng or random.Random()

    host = connection_utils.strip_scheme(base_url)
    targets = {
        "PostgreSQL Database": (
            connection_utils.build_postgres_connection_string(url=host, database="postgres", port=5432),
            connection_utils.validate_postgres_connection_string,
        ),
        "REST API (PostgREST)": (endpoints.rest_api_endpoint, connection_utils.validate_rest_api_endpoint),
        "Auth Service": (endpoints.auth_health_endpoint, connection_utils.validate_auth_endpoint),
        "Storage Service": (endpoints.storage_endpoint, connection_utils.validate_storage_endpoint),
        "Edge Functions": (endpoints.functions_endpoint, connection_utils.validate_functions_endpoint),
    }

    logger.info(f"Running simulated Supabase checks against {host}")
    results = []
    for name, latency in _SUITE_STEPS:
        endpoint, validator = targets[name]
        check = validator(endpoint)
        if not check.is_valid:
            results.append(schemas.EndpointCheckResult(
                name=name, status=schemas.SuiteStatus.error, message=check.message, endpoint=endpoint
            ))
            continue

        if delay > 0:
            sleep(latency * delay)
        status, message, details = _suite_outcome(name, rng)
        results.append(schemas.EndpointCheckResult(
            name=name, status=status, message=message, endpoint=endpoint, details=details
        ))

    counts = {status: sum(1 for r in results if r.status == status) for status in schemas.SuiteStatus}
    logger.info(
        f"Supabase checks for {host}: {counts[schemas.SuiteStatus.success]} healthy, "
        f"{counts[schemas.SuiteStatus.warning]} warnings, {counts[schemas.SuiteStatus.error]} errors"
    )
    return schemas.SuiteResult(
        base_url=base_url,
        results=results,
        success_count=counts[schemas.SuiteStatus.success],
        warning_count=counts[schemas.SuiteStatus.warning],
        error_count=counts[schemas.SuiteStatus.error],
    )
