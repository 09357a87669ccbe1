"""Connection string and endpoint helper tests"""
import pytest

from service_nexus.app import connection_utils as cu


class TestPostgresConnectionString:

    def test_valid_prefix(self):
        result = cu.validate_postgres_connection_string("postgresql://u:p@h:5432/d")
        assert result.is_valid
        assert result.corrected_string == "postgresql://u:p@h:5432/d"

    def test_postgres_typo_is_corrected(self):
        result = cu.validate_postgres_connection_string("postgres://u:p@h:5432/d")
        assert result.is_valid
        assert result.corrected_string == "postgresql://u:p@h:5432/d"
        assert "postgres://" in result.message

    def test_other_scheme_is_rejected(self):
        result = cu.validate_postgres_connection_string("mysql://h/d")
        assert not result.is_valid
        assert "postgresql://" in result.message
        assert result.corrected_string == "mysql://h/d"

    @pytest.mark.parametrize("value", ["", None])
    def test_empty(self, value):
        result = cu.validate_postgres_connection_string(value)
        assert not result.is_valid
        assert result.message == "Connection string is empty"

    def test_only_the_prefix_is_rewritten(self):
        result = cu.validate_postgres_connection_string("postgres://postgres:pw@postgres/postgres")
        assert result.corrected_string == "postgresql://postgres:pw@postgres/postgres"


class TestBuildConnectionString:

    def test_all_parts(self):
        assert cu.build_postgres_connection_string(
            url="db.internal", database="app", username="u", password="p", port=5432, ssl_mode="require"
        ) == "postgresql://u:p@db.internal:5432/app?sslmode=require"

    def test_minimal(self):
        assert cu.build_postgres_connection_string(url="h", database="d") == "postgresql://h/d"

    def test_username_without_password(self):
        assert cu.build_postgres_connection_string(url="h", database="d", username="u") == "postgresql://u@h/d"

    def test_password_without_username_is_dropped(self):
        assert cu.build_postgres_connection_string(url="h", database="d", password="p") == "postgresql://h/d"

    def test_string_port_and_enum_ssl_mode(self):
        from service_nexus.app.schemas import SslMode
        assert cu.build_postgres_connection_string(
            url="h", database="d", port="6543", ssl_mode=SslMode.verify_full
        ) == "postgresql://h:6543/d?sslmode=verify-full"

    @pytest.mark.parametrize("url,database", [("", "d"), ("h", ""), (None, "d"), ("h", None)])
    def test_missing_host_or_database(self, url, database):
        assert cu.build_postgres_connection_string(url=url, database=database, username="u") == ""


class TestEndpointValidators:

    @pytest.mark.parametrize("validator,good,bad", [
        (cu.validate_rest_api_endpoint, "http://h/rest/v1", "http://h/api/v1"),
        (cu.validate_auth_endpoint, "http://h/auth/v1", "http://h/login"),
        (cu.validate_storage_endpoint, "http://h/storage/v1", "http://h/files"),
        (cu.validate_functions_endpoint, "http://h/functions/v1", "http://h/fn"),
    ])
    def test_substring_rule(self, validator, good, bad):
        assert validator(good).is_valid
        assert not validator(bad).is_valid
        assert not validator("").is_valid
        assert "empty" in validator("").message

    def test_containment_not_path_parsing(self):
        # Anywhere in the string counts
        assert cu.validate_rest_api_endpoint("http://h/v1/restaurants").is_valid
        assert cu.validate_auth_endpoint("http://h/oauth").is_valid is False
        assert cu.validate_auth_endpoint("http://h/x/authorize").is_valid


class TestSupabaseEndpoints:

    def test_https_is_forced_to_http(self):
        endpoints = cu.build_supabase_endpoints("https://db.example.com")
        assert endpoints.rest_api_endpoint == "http://db.example.com/rest/v1"
        assert endpoints.auth_endpoint == "http://db.example.com/auth/v1"
        assert endpoints.auth_health_endpoint == "http://db.example.com/auth/v1/health"
        assert endpoints.storage_endpoint == "http://db.example.com/storage/v1"
        assert endpoints.functions_endpoint == "http://db.example.com/functions/v1"

    def test_bare_host(self):
        assert cu.build_supabase_endpoints("db.example.com:8000").rest_api_endpoint == "http://db.example.com:8000/rest/v1"

    def test_only_leading_scheme_stripped(self):
        endpoints = cu.build_supabase_endpoints("http://http://h")
        assert endpoints.rest_api_endpoint == "http://http://h/rest/v1"

    @pytest.mark.parametrize("value", ["", None])
    def test_empty_gives_none(self, value):
        assert cu.build_supabase_endpoints(value) is None

    def test_derived_endpoints_pass_their_validators(self):
        endpoints = cu.build_supabase_endpoints("h")
        assert cu.validate_rest_api_endpoint(endpoints.rest_api_endpoint).is_valid
        assert cu.validate_auth_endpoint(endpoints.auth_endpoint).is_valid
        assert cu.validate_storage_endpoint(endpoints.storage_endpoint).is_valid
        assert cu.validate_functions_endpoint(endpoints.functions_endpoint).is_valid
