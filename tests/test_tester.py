"""Simulated connectivity check tests"""
import random

import pytest

from service_nexus.app import crud, schemas, tester
from service_nexus.app.exceptions import ServiceValidationError


class SequenceRandom(random.Random):
    """Random source returning preset values from ``random()``."""

    def __init__(self, values):
        super().__init__(0)
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


class TestSimulate:

    @pytest.mark.parametrize("service_type,threshold", [
        ("PostgreSQL", 0.8),
        ("REST API", 0.7),
        ("Auth Service", 0.75),
        ("Hosting", 0.6),
        ("Other", 0.6),
    ])
    def test_success_rate_threshold(self, service_type, threshold):
        service = schemas.ServiceCreate(name="Target", type=service_type, url="h")
        ok, _ = tester.simulate_service_test(service, rng=SequenceRandom([threshold - 0.01]), delay=0)
        failed, _ = tester.simulate_service_test(service, rng=SequenceRandom([threshold]), delay=0)
        assert ok is True
        assert failed is False

    def test_message_matches_outcome(self):
        service = schemas.ServiceCreate(name="Orders", type="REST API", url="http://h/rest/v1")
        _, ok_message = tester.simulate_service_test(service, rng=SequenceRandom([0.0]), delay=0)
        _, failed_message = tester.simulate_service_test(service, rng=SequenceRandom([0.99]), delay=0)
        assert ok_message == "Successfully connected to Orders REST endpoint"
        assert failed_message == "Failed: REST API returned 403 Forbidden"

    def test_sleeps_for_delay(self):
        slept = []
        service = schemas.ServiceCreate(name="Target", type="Other", url="h")
        tester.simulate_service_test(service, rng=SequenceRandom([0.0]), delay=1.5, sleep=slept.append)
        assert slept == [1.5]


class TestRunConnectionCheck:

    def test_records_test_on_success(self, store, clock, rest_draft):
        created = crud.create_service(store, rest_draft, clock=clock)
        result = tester.run_connection_check(store, created.id, rng=SequenceRandom([0.1]), delay=0, clock=clock)

        assert result.success
        assert result.service == "Orders API"
        stored = crud.get_service_by_id(store, created.id)
        assert stored.last_tested == result.last_tested
        assert stored.last_tested is not None

    def test_records_test_on_failure(self, store, clock, rest_draft):
        created = crud.create_service(store, rest_draft, clock=clock)
        result = tester.run_connection_check(store, created.id, rng=SequenceRandom([0.99]), delay=0, clock=clock)

        assert not result.success
        assert crud.get_service_by_id(store, created.id).last_tested is not None

    def test_invalid_service_is_not_tested(self, store, clock):
        created = crud.create_service(
            store, schemas.ServiceCreate(name="Pg", type="PostgreSQL", url="h"), clock=clock
        )
        with pytest.raises(ServiceValidationError):
            tester.run_connection_check(store, created.id, rng=SequenceRandom([0.0]), delay=0, clock=clock)
        assert crud.get_service_by_id(store, created.id).last_tested is None

    def test_unknown_id(self, store, clock):
        assert tester.run_connection_check(store, "missing", delay=0, clock=clock) is None


class TestSupabaseSuite:

    NAMES = ["PostgreSQL Database", "REST API (PostgREST)", "Auth Service", "Storage Service", "Edge Functions"]

    def test_result_shape_and_endpoints(self):
        suite = tester.simulate_supabase_suite("https://db.example.com", rng=SequenceRandom([0.5, 0.9]), delay=0)

        assert [r.name for r in suite.results] == self.NAMES
        assert [r.endpoint for r in suite.results] == [
            "postgresql://db.example.com:5432/postgres",
            "http://db.example.com/rest/v1",
            "http://db.example.com/auth/v1/health",
            "http://db.example.com/storage/v1",
            "http://db.example.com/functions/v1",
        ]
        assert all(r.message and r.details for r in suite.results)
        assert suite.base_url == "https://db.example.com"

    def test_rest_success_and_storage_warning(self):
        suite = tester.simulate_supabase_suite("h", rng=SequenceRandom([0.5, 0.9]), delay=0)

        statuses = [r.status for r in suite.results]
        assert statuses[1] == schemas.SuiteStatus.success
        assert statuses[3] == schemas.SuiteStatus.warning
        assert (suite.success_count, suite.warning_count, suite.error_count) == (4, 1, 0)

    def test_rest_error_and_storage_success(self):
        suite = tester.simulate_supabase_suite("h", rng=SequenceRandom([0.3, 0.5]), delay=0)

        assert suite.results[1].status == schemas.SuiteStatus.error
        assert "403" in suite.results[1].details
        assert suite.results[3].status == schemas.SuiteStatus.success
        assert (suite.success_count, suite.warning_count, suite.error_count) == (4, 0, 1)

    def test_endpoint_failing_its_validator_is_an_error(self):
        # Nothing left after stripping the scheme, so no connection string can be built
        suite = tester.simulate_supabase_suite("http://", rng=SequenceRandom([0.5, 0.9]), delay=0)

        assert suite.results[0].status == schemas.SuiteStatus.error
        assert suite.results[0].message == "Connection string is empty"
        assert suite.error_count == 1

    def test_sleeps_per_step(self):
        slept = []
        tester.simulate_supabase_suite("h", rng=SequenceRandom([0.5, 0.9]), delay=2, sleep=slept.append)
        assert slept == [1.6, 1.2, 1.4, 1.0, 1.8]

    @pytest.mark.parametrize("base_url", ["", None])
    def test_empty_base_url(self, base_url):
        assert tester.simulate_supabase_suite(base_url, delay=0) is None
