"""Tests for sliding-window admission control."""

import logging
from datetime import datetime, timedelta

import pytest

from upload_governance.core import InvalidPrincipalError, ManualClock, QuotaStoreError
from upload_governance.quota import (
    AdmissionController,
    DenialReason,
    InMemoryQuotaStore,
)


class BrokenSaveStore(InMemoryQuotaStore):
    """In-memory store whose writes always fail."""

    def save(self, principal_id: str, timestamps: list[datetime]) -> None:
        raise QuotaStoreError("Failed to save quota history: disk full", operation="save")


def _admit(controller: AdmissionController, principal: str = "u1") -> None:
    decision = controller.try_admit(principal)
    assert decision.allowed
    controller.record_admission(principal)


# =============================================================================
# Hourly window
# =============================================================================


class TestHourlyWindow:
    """Tests for the trailing-hour limit."""

    def test_two_admits_then_denied(self, controller: AdmissionController, clock: ManualClock) -> None:
        """Third attempt inside the hour is denied for the hourly reason."""
        _admit(controller)
        clock.advance(minutes=1)
        _admit(controller)
        clock.advance(minutes=1)

        decision = controller.try_admit("u1")
        assert not decision.allowed
        assert decision.hourly_count == 2
        assert decision.daily_count == 2
        assert decision.denial is not None
        assert decision.denial.reason == DenialReason.HOURLY
        assert decision.denial.wait_time_seconds == pytest.approx(3480)
        assert decision.denial.wait_minutes == 58
        assert decision.reason == (
            "Upload limit reached. You can upload 2 images per hour. Please wait 58 minutes."
        )

    def test_wait_rounds_up(self, controller: AdmissionController, clock: ManualClock) -> None:
        """Partial minutes round up."""
        _admit(controller)
        _admit(controller)
        clock.advance(seconds=3570)

        decision = controller.try_admit("u1")
        assert decision.denial is not None
        assert decision.denial.wait_time_seconds == pytest.approx(30)
        assert decision.reason.endswith("Please wait 1 minute.")

    def test_entry_exactly_one_hour_old_leaves_window(
        self, controller: AdmissionController, clock: ManualClock
    ) -> None:
        """The hourly window is strict: an entry one hour old no longer counts."""
        _admit(controller)
        _admit(controller)
        clock.advance(hours=1)

        decision = controller.try_admit("u1")
        assert decision.allowed
        assert decision.hourly_count == 0
        assert decision.daily_count == 2

    def test_check_does_not_consume(self, controller: AdmissionController) -> None:
        """try_admit alone never uses up quota."""
        for _ in range(10):
            assert controller.try_admit("u1").allowed
        assert controller.usage("u1").daily_count == 0

    def test_principals_are_independent(self, controller: AdmissionController) -> None:
        """One principal's history never affects another."""
        _admit(controller, "u1")
        _admit(controller, "u1")
        assert not controller.try_admit("u1").allowed
        assert controller.try_admit("u2").allowed

    def test_denial_logged_with_context(
        self, controller: AdmissionController, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Denials are logged at INFO with the principal and reason."""
        _admit(controller)
        _admit(controller)

        with caplog.at_level(logging.INFO, logger="upload_governance.quota.controller"):
            controller.try_admit("u1")

        record = caplog.records[-1]
        assert record.levelno == logging.INFO
        assert record.principal_id == "u1"
        assert record.reason == "hourly"


# =============================================================================
# Daily window
# =============================================================================


class TestDailyWindow:
    """Tests for the trailing-24-hour limit."""

    def _fill_day(self, controller: AdmissionController, clock: ManualClock) -> None:
        # Five admissions two hours apart keep the hourly window clear
        for _ in range(5):
            _admit(controller)
            clock.advance(hours=2)

    def test_sixth_upload_denied(self, controller: AdmissionController, clock: ManualClock) -> None:
        """Five admissions in a day exhaust the daily limit."""
        self._fill_day(controller, clock)

        decision = controller.try_admit("u1")
        assert not decision.allowed
        assert decision.hourly_count == 0
        assert decision.daily_count == 5
        assert decision.denial.reason == DenialReason.DAILY
        # Oldest entry is 10 hours old
        assert decision.denial.wait_time_seconds == pytest.approx(14 * 3600)
        assert decision.denial.wait_hours == 14
        assert decision.reason == (
            "Daily limit reached. You can upload 5 images per day. Please wait 14 hours."
        )

    def test_slot_frees_after_oldest_expires(
        self, controller: AdmissionController, clock: ManualClock
    ) -> None:
        """Once the oldest entry is 24 hours old it is pruned."""
        self._fill_day(controller, clock)
        clock.advance(hours=14)

        decision = controller.try_admit("u1")
        assert decision.allowed
        assert decision.daily_count == 4

    def test_hourly_reason_wins(self, clock: ManualClock) -> None:
        """At both limits the hourly reason is reported."""
        controller = AdmissionController(InMemoryQuotaStore(), clock=clock, hourly_limit=2, daily_limit=2)
        _admit(controller)
        _admit(controller)

        decision = controller.try_admit("u1")
        assert decision.denial.reason == DenialReason.HOURLY


# =============================================================================
# Pruning
# =============================================================================


class TestPruning:
    """Tests for history pruning."""

    def test_prune_is_persisted(self, clock: ManualClock) -> None:
        """Evaluating quota writes back the pruned history."""
        store = InMemoryQuotaStore()
        store.save("u1", [clock.now() - timedelta(hours=30), clock.now() - timedelta(hours=3)])
        controller = AdmissionController(store, clock=clock)

        controller.try_admit("u1")
        assert store.load("u1") == [clock.now() - timedelta(hours=3)]

    def test_prune_is_idempotent(self, clock: ManualClock) -> None:
        """Two evaluations in a row give identical counts."""
        store = InMemoryQuotaStore()
        store.save(
            "u1",
            [clock.now() - timedelta(hours=h) for h in (25, 23, 5, 0.5)],
        )
        controller = AdmissionController(store, clock=clock)

        first = controller.try_admit("u1")
        second = controller.try_admit("u1")
        assert (first.hourly_count, first.daily_count) == (second.hourly_count, second.daily_count)
        assert (first.hourly_count, first.daily_count) == (1, 3)

    def test_prune_save_failure_is_tolerated(
        self, clock: ManualClock, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A failing write during evaluation still yields a decision."""
        controller = AdmissionController(BrokenSaveStore(), clock=clock)

        with caplog.at_level(logging.WARNING):
            decision = controller.try_admit("u1")
        assert decision.allowed
        assert "Could not persist" in caplog.text

    def test_record_admission_failure_propagates(self, clock: ManualClock) -> None:
        """Failing to record an admission is reported to the caller."""
        controller = AdmissionController(BrokenSaveStore(), clock=clock)
        with pytest.raises(QuotaStoreError):
            controller.record_admission("u1")

    def test_record_admission_prunes(self, clock: ManualClock) -> None:
        """Recording also drops entries outside the daily window."""
        store = InMemoryQuotaStore()
        store.save("u1", [clock.now() - timedelta(days=2)])
        controller = AdmissionController(store, clock=clock)

        controller.record_admission("u1")
        assert store.load("u1") == [clock.now()]


# =============================================================================
# Inputs and usage
# =============================================================================


class TestInputs:
    """Tests for argument validation and usage reporting."""

    @pytest.mark.parametrize("principal", ["", "   "])
    def test_empty_principal_rejected(self, controller: AdmissionController, principal: str) -> None:
        """Admission requires a principal."""
        with pytest.raises(InvalidPrincipalError):
            controller.try_admit(principal)
        with pytest.raises(InvalidPrincipalError):
            controller.record_admission(principal)

    def test_empty_principal_usage_is_zero(self, controller: AdmissionController) -> None:
        """Usage for an empty principal reports nothing used."""
        stats = controller.usage("")
        assert (stats.hourly_count, stats.daily_count) == (0, 0)
        assert (stats.hourly_remaining, stats.daily_remaining) == (2, 5)

    def test_usage_counts(self, controller: AdmissionController, clock: ManualClock) -> None:
        """Usage reports both windows and what is left."""
        _admit(controller)
        clock.advance(hours=2)
        _admit(controller)

        stats = controller.usage("u1")
        assert stats.hourly_count == 1
        assert stats.daily_count == 2
        assert stats.hourly_remaining == 1
        assert stats.daily_remaining == 3

    def test_explicit_now(self, controller: AdmissionController, clock: ManualClock) -> None:
        """Callers may evaluate at an explicit instant."""
        _admit(controller)
        _admit(controller)
        later = clock.now() + timedelta(hours=2)
        assert controller.try_admit("u1", now=later).allowed

    def test_limits_must_be_positive(self) -> None:
        """Zero limits are rejected."""
        with pytest.raises(ValueError):
            AdmissionController(hourly_limit=0)

    def test_summary_shape(self, controller: AdmissionController) -> None:
        """Allowed summaries omit the denial fields."""
        assert controller.try_admit("u1").to_summary() == {
            "allowed": True,
            "hourly_count": 0,
            "daily_count": 0,
        }
