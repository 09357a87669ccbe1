# service_nexus/main.py
import logging
import random

from fastapi import FastAPI, Depends, HTTPException, Query, Response, status
from fastapi.responses import RedirectResponse

from . import config, database
from .app import connection_utils, crud, schemas, tester, validation
from .app.exceptions import PersistenceError, ServiceValidationError, StorageQuotaExceededError
from .app.storage import KeyValueStore, SqlKeyValueStore

# --- Logging Setup ---
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# --- Create DB Tables on Startup ---
# `create_all` doesn't recreate existing tables, so this is safe on every start.
database.create_db_and_tables()


# --- FastAPI App Initialization ---
app = FastAPI(
    title="Service Nexus",
    description="Register remote services, validate their connection details and run simulated connectivity checks.",
    version="1.0.0"
)

_store = SqlKeyValueStore(database.SessionLocal, quota_bytes=config.STORAGE_QUOTA_BYTES)


# --- Dependencies ---
def get_store() -> KeyValueStore:
    """The process-wide key-value store holding the service collection."""
    return _store

def get_rng() -> random.Random | None:
    """Random source for simulated checks; None means a fresh unseeded one."""
    return None


def _persistence_failure(e: PersistenceError) -> HTTPException:
    if isinstance(e, StorageQuotaExceededError):
        logger.warning(f"Storage quota exceeded: {e}")
        return HTTPException(status_code=status.HTTP_507_INSUFFICIENT_STORAGE, detail=str(e))
    logger.error(f"Persisting the service collection failed: {e}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not save services.")

def _not_found(service_id: str) -> HTTPException:
    logger.warning(f"Service not found: {service_id}")
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Service '{service_id}' not found.")


# --- Service Registry Endpoints ---

@app.get(
    "/api/services",
    response_model=list[schemas.Service],
    tags=["Services"],
    summary="List registered services"
)
def list_services(
    q: str | None = Query(None, description="Case-insensitive search on name and URL"),
    service_type: str | None = Query(None, alias="type", description="Exact type, or 'all'"),
    service_status: str | None = Query(None, alias="status", description="Exact status, or 'all'"),
    store: KeyValueStore = Depends(get_store)
):
    """Lists services in the order they were added, optionally filtered."""
    services = crud.get_services(store)
    return crud.filter_services(services, query=q, service_type=service_type, status=service_status)

@app.post(
    "/api/services",
    response_model=schemas.Service,
    status_code=status.HTTP_201_CREATED,
    tags=["Services"],
    summary="Register a new service"
)
def create_new_service(
    service: schemas.ServiceCreate,
    store: KeyValueStore = Depends(get_store)
):
    logger.info(f"Creating new service registration: {service.name}")
    try:
        new_service = crud.create_service(store, service)
    except PersistenceError as e:
        raise _persistence_failure(e)
    logger.info(f"Service '{new_service.name}' created successfully with ID {new_service.id}.")
    return new_service

@app.get(
    "/api/services/{service_id}",
    response_model=schemas.Service,
    tags=["Services"],
    summary="Get one service"
)
def read_service(service_id: str, store: KeyValueStore = Depends(get_store)):
    db_service = crud.get_service_by_id(store, service_id)
    if db_service is None:
        raise _not_found(service_id)
    return db_service

@app.patch(
    "/api/services/{service_id}",
    response_model=schemas.Service,
    tags=["Services"],
    summary="Update fields of a service"
)
def update_existing_service(
    service_id: str,
    service: schemas.ServiceUpdate,
    store: KeyValueStore = Depends(get_store)
):
    """Only the fields present in the body change."""
    try:
        db_service = crud.update_service(store, service_id, service)
    except PersistenceError as e:
        raise _persistence_failure(e)
    if db_service is None:
        raise _not_found(service_id)
    logger.info(f"Service '{db_service.name}' ({service_id}) updated.")
    return db_service

@app.delete(
    "/api/services/{service_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Services"],
    summary="Delete a service"
)
def delete_existing_service(service_id: str, store: KeyValueStore = Depends(get_store)):
    try:
        removed = crud.delete_service(store, service_id)
    except PersistenceError as e:
        raise _persistence_failure(e)
    if not removed:
        raise _not_found(service_id)
    logger.info(f"Service {service_id} deleted.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Validation & Testing Endpoints ---

@app.post(
    "/api/validate",
    response_model=schemas.ValidationResult,
    tags=["Validation"],
    summary="Validate connection details before saving"
)
def validate_draft(service: schemas.ServiceBase):
    return validation.validate_service(service)

@app.post(
    "/api/services/{service_id}/validate",
    response_model=schemas.ValidationResult,
    tags=["Validation"],
    summary="Validate a stored service's connection details"
)
def validate_stored_service(service_id: str, store: KeyValueStore = Depends(get_store)):
    db_service = crud.get_service_by_id(store, service_id)
    if db_service is None:
        raise _not_found(service_id)
    return validation.validate_service(db_service)

@app.post(
    "/api/services/{service_id}/test",
    response_model=schemas.ConnectionTestResult,
    tags=["Validation"],
    summary="Run a simulated connectivity check"
)
def check_service_connection(
    service_id: str,
    store: KeyValueStore = Depends(get_store),
    rng: random.Random | None = Depends(get_rng)
):
    """
    Validates the service, then simulates a connection attempt.

    Nothing is contacted over the network; the outcome is random. The
    test time is recorded on the service whether or not the check succeeds.
    """
    logger.info(f"Connection check requested for service {service_id}")
    try:
        result = tester.run_connection_check(store, service_id, rng=rng, delay=config.SIMULATED_TEST_DELAY)
    except ServiceValidationError as e:
        logger.warning(f"Validation failed for service {service_id}: {e.message}")
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    except PersistenceError as e:
        raise _persistence_failure(e)
    if result is None:
        raise _not_found(service_id)
    return result

@app.get(
    "/api/services/{service_id}/connection-string",
    response_model=schemas.ConnectionStringResponse,
    tags=["Validation"],
    summary="Build a PostgreSQL connection string from a service's fields"
)
def read_connection_string(service_id: str, store: KeyValueStore = Depends(get_store)):
    db_service = crud.get_service_by_id(store, service_id)
    if db_service is None:
        raise _not_found(service_id)
    built = connection_utils.build_postgres_connection_string(
        url=db_service.url,
        database=db_service.database,
        username=db_service.username,
        password=db_service.password,
        port=db_service.port,
        ssl_mode=db_service.ssl_mode,
    )
    if not built:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Hostname and database name are required to build a connection string."
        )
    return schemas.ConnectionStringResponse(connection_string=built)

@app.get(
    "/api/endpoints",
    response_model=schemas.SupabaseEndpoints,
    tags=["Validation"],
    summary="Derive Supabase sub-service endpoints from a base URL"
)
def read_supabase_endpoints(base_url: str = Query("", description="Host, with or without http(s)://")):
    endpoints = connection_utils.build_supabase_endpoints(base_url)
    if endpoints is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="A base URL is required.")
    return endpoints


@app.post(
    "/api/endpoints/test",
    response_model=schemas.SuiteResult,
    tags=["Validation"],
    summary="Run simulated checks against every Supabase sub-service of a host"
)
def check_supabase_endpoints(
    suite: schemas.SuiteRequest,
    rng: random.Random | None = Depends(get_rng)
):
    """
    Derives the PostgreSQL, REST, Auth, Storage and Functions endpoints of
    `baseUrl` and simulates a check of each. Nothing is contacted over the
    network and nothing is stored.
    """
    logger.info(f"Supabase suite requested for {suite.base_url}")
    result = tester.simulate_supabase_suite(suite.base_url, rng=rng, delay=config.SIMULATED_SUITE_DELAY_SCALE)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Could not derive Supabase endpoints from the provided URL."
        )
    return result


# --- Root Redirect ---
@app.get("/", include_in_schema=False)
async def root_redirect():
    # Redirect to API docs
    return RedirectResponse(url="/docs")
