# service_nexus/app/schemas.py
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Stored and served as camelCase JSON, built from either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Enumerations ---
class ServiceStatus(str, Enum):
    active = "Active"
    inactive = "Inactive"
    maintenance = "Maintenance"

class SslMode(str, Enum):
    disable = "disable"
    require = "require"
    prefer = "prefer"
    verify_ca = "verify-ca"
    verify_full = "verify-full"

class ServiceType(str, Enum):
    """Values offered when registering a service. ``type`` stays a free-form
    string on the record, so older entries may carry anything."""
    postgresql = "PostgreSQL"
    database = "Database"
    authentication = "Authentication"
    storage = "Storage"
    api = "API"
    hosting = "Hosting"
    other = "Other"
    # Legacy values, only meaningful to the validator
    rest_api = "REST API"
    auth_service = "Auth Service"

class ServiceKind(str, Enum):
    """Closed set of validation families a ``type`` string maps onto."""
    postgres = "postgres"
    rest_api = "rest_api"
    auth_service = "auth_service"
    storage = "storage"
    hosting = "hosting"
    other = "other"

    @classmethod
    def from_type(cls, service_type: str | None) -> "ServiceKind":
        return _KIND_BY_TYPE.get(service_type or "", cls.other)


_KIND_BY_TYPE = {
    ServiceType.postgresql.value: ServiceKind.postgres,
    ServiceType.rest_api.value: ServiceKind.rest_api,
    ServiceType.auth_service.value: ServiceKind.auth_service,
    ServiceType.storage.value: ServiceKind.storage,
    ServiceType.hosting.value: ServiceKind.hosting,
}


# --- Base and Create Schemas ---
class ServiceBase(CamelModel):
    name: str = Field(..., min_length=2, description="Display name")
    type: str = Field(..., min_length=1, description="Service type, e.g. PostgreSQL or REST API")
    url: str = Field(..., description="Hostname for PostgreSQL, full URL otherwise")
    connection_string: str | None = None
    api_key: str | None = None
    username: str | None = None
    password: str | None = None
    status: ServiceStatus = ServiceStatus.inactive
    notes: str | None = None
    # PostgreSQL specific fields
    database: str | None = None
    port: int | None = Field(None, ge=1, le=65535)
    ssl_mode: SslMode | None = None

class ServiceCreate(ServiceBase):
    url: str = Field(..., min_length=1, description="Hostname for PostgreSQL, full URL otherwise")

class ServiceUpdate(CamelModel):
    """Partial update: only fields that are explicitly set get merged."""
    name: str | None = Field(None, min_length=2)
    type: str | None = Field(None, min_length=1)
    url: str | None = Field(None, min_length=1)
    connection_string: str | None = None
    api_key: str | None = None
    username: str | None = None
    password: str | None = None
    status: ServiceStatus | None = None
    notes: str | None = None
    database: str | None = None
    port: int | None = Field(None, ge=1, le=65535)
    ssl_mode: SslMode | None = None

    @field_validator("name", "type", "url", "status")
    @classmethod
    def required_fields_not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not set to null")
        return value

# --- Read Schema (what the store holds) ---
class Service(ServiceBase):
    id: str
    last_tested: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def timestamps_ordered(self):
        if self.created_at > self.updated_at:
            raise ValueError("createdAt must not be later than updatedAt")
        return self


# --- Validation and derived values ---
class ValidationResult(CamelModel):
    is_valid: bool
    message: str

class ConnectionStringValidation(ValidationResult):
    corrected_string: str

class SupabaseEndpoints(CamelModel):
    rest_api_endpoint: str
    auth_endpoint: str
    auth_health_endpoint: str
    storage_endpoint: str
    functions_endpoint: str

class ConnectionStringResponse(CamelModel):
    connection_string: str

# --- API Response Schemas ---
class ConnectionTestResult(CamelModel):
    service_id: str
    service: str
    success: bool
    message: str
    last_tested: datetime | None = None

class SuiteStatus(str, Enum):
    success = "success"
    warning = "warning"
    error = "error"

class SuiteRequest(CamelModel):
    base_url: str = Field(..., min_length=2, description="Supabase host, with or without http(s)://")

class EndpointCheckResult(CamelModel):
    name: str
    status: SuiteStatus
    message: str
    endpoint: str
    details: str | None = None

class SuiteResult(CamelModel):
    base_url: str
    results: list[EndpointCheckResult]
    success_count: int
    warning_count: int
    error_count: int
