"""
Unit tests for insight_engine/core/circuit_breaker.py

Covers the closed -> open -> half-open -> closed/open transitions, the
single half-open probe, and probe release.
"""
import pytest

from insight_engine.core.circuit_breaker import CircuitState


def trip(breaker, service="listings", times=5):
    for _ in range(times):
        breaker.record_failure(service)


class TestClosedState:
    """Tests for failure counting while closed."""

    @pytest.mark.unit
    def test_new_service_is_closed(self, circuit_breaker):
        assert circuit_breaker.state("listings") == CircuitState.CLOSED
        assert circuit_breaker.can_make_request("listings")

    @pytest.mark.unit
    def test_stays_closed_below_threshold(self, circuit_breaker):
        trip(circuit_breaker, times=4)
        assert circuit_breaker.state("listings") == CircuitState.CLOSED
        assert circuit_breaker.can_make_request("listings")

    @pytest.mark.unit
    def test_opens_at_threshold(self, circuit_breaker):
        trip(circuit_breaker, times=5)
        assert circuit_breaker.state("listings") == CircuitState.OPEN
        assert not circuit_breaker.can_make_request("listings")

    @pytest.mark.unit
    def test_success_resets_counter(self, circuit_breaker):
        trip(circuit_breaker, times=4)
        circuit_breaker.record_success("listings")
        trip(circuit_breaker, times=4)
        assert circuit_breaker.state("listings") == CircuitState.CLOSED
        assert circuit_breaker.get_status("listings")["consecutive_failures"] == 4

    @pytest.mark.unit
    def test_services_are_independent(self, circuit_breaker):
        trip(circuit_breaker, "valuation")
        assert circuit_breaker.can_make_request("listings")
        assert not circuit_breaker.can_make_request("valuation")


class TestOpenAndHalfOpen:
    """Tests for the reset timeout and the probe."""

    @pytest.mark.unit
    def test_denied_until_reset_timeout(self, circuit_breaker, clock):
        trip(circuit_breaker)
        clock.advance(59)
        assert not circuit_breaker.can_make_request("listings")

    @pytest.mark.unit
    def test_single_probe_after_timeout(self, circuit_breaker, clock):
        trip(circuit_breaker)
        clock.advance(60)

        assert circuit_breaker.can_make_request("listings")
        assert circuit_breaker.state("listings") == CircuitState.HALF_OPEN
        assert not circuit_breaker.can_make_request("listings")
        assert not circuit_breaker.can_make_request("listings")

    @pytest.mark.unit
    def test_probe_success_closes(self, circuit_breaker, clock):
        trip(circuit_breaker)
        clock.advance(60)
        circuit_breaker.can_make_request("listings")

        circuit_breaker.record_success("listings")

        status = circuit_breaker.get_status("listings")
        assert status["state"] == "closed"
        assert status["consecutive_failures"] == 0
        assert status["next_attempt_time"] is None
        assert circuit_breaker.can_make_request("listings")

    @pytest.mark.unit
    def test_probe_failure_reopens_with_fresh_timeout(self, circuit_breaker, clock):
        trip(circuit_breaker)
        clock.advance(60)
        circuit_breaker.can_make_request("listings")

        circuit_breaker.record_failure("listings")

        status = circuit_breaker.get_status("listings")
        assert status["state"] == "open"
        assert status["next_attempt_time"] == clock.now + 60
        assert not circuit_breaker.can_make_request("listings")

        clock.advance(60)
        assert circuit_breaker.can_make_request("listings")

    @pytest.mark.unit
    def test_release_probe_frees_slot_without_changing_state(self, circuit_breaker, clock):
        trip(circuit_breaker)
        clock.advance(60)
        circuit_breaker.can_make_request("listings")

        circuit_breaker.release_probe("listings")

        assert circuit_breaker.state("listings") == CircuitState.HALF_OPEN
        assert circuit_breaker.can_make_request("listings")
        assert not circuit_breaker.can_make_request("listings")


class TestStatusAndReset:

    @pytest.mark.unit
    def test_status_state_is_plain_string(self, circuit_breaker):
        circuit_breaker.record_failure("listings")
        status = circuit_breaker.get_status("listings")
        assert status["state"] == "closed"
        assert status["consecutive_failures"] == 1
        assert status["probe_in_flight"] is False

    @pytest.mark.unit
    def test_reading_unknown_service_does_not_track_it(self, circuit_breaker):
        status = circuit_breaker.get_status("census")

        assert status["state"] == "closed"
        assert status["consecutive_failures"] == 0
        assert circuit_breaker.state("census") == CircuitState.CLOSED
        assert circuit_breaker.get_all_statuses() == {}

    @pytest.mark.unit
    def test_all_statuses(self, circuit_breaker):
        circuit_breaker.record_failure("listings")
        circuit_breaker.record_success("valuation")
        assert set(circuit_breaker.get_all_statuses()) == {"listings", "valuation"}

    @pytest.mark.unit
    def test_reset_one_service(self, circuit_breaker):
        trip(circuit_breaker, "listings")
        trip(circuit_breaker, "valuation")
        circuit_breaker.reset("listings")
        assert circuit_breaker.can_make_request("listings")
        assert not circuit_breaker.can_make_request("valuation")

    @pytest.mark.unit
    def test_reset_all(self, circuit_breaker):
        trip(circuit_breaker, "listings")
        circuit_breaker.reset()
        assert circuit_breaker.get_all_statuses() == {}
