"""Unit tests for session state: samples, averages and run tokens."""

import pytest

from lanspeed.session import SpeedTestSession


@pytest.mark.unit
class TestSessionLifecycle:
    """Tests for start/stop transitions."""

    def test_new_session_is_idle(self) -> None:
        session = SpeedTestSession()
        assert session.running is False
        assert session.samples == []
        assert session.started_at is None

    def test_start_sets_running_and_timestamp(self) -> None:
        session = SpeedTestSession()
        token = session.start()
        assert session.running is True
        assert session.started_at is not None
        assert session.is_current(token)
        assert token.cancelled is False

    def test_stop_reports_transition_once(self) -> None:
        session = SpeedTestSession()
        token = session.start()
        assert session.stop() is True
        assert session.running is False
        assert token.cancelled is True
        assert session.is_current(token) is False

    def test_stop_is_idempotent(self) -> None:
        session = SpeedTestSession()
        session.start()
        session.add_speed(10.0)
        session.stop()
        assert session.stop() is False
        assert session.running is False
        assert session.samples == [10.0]

    def test_stop_when_never_started_is_noop(self) -> None:
        session = SpeedTestSession()
        assert session.stop() is False
        assert session.running is False

    def test_stop_with_stale_token_is_noop(self) -> None:
        session = SpeedTestSession()
        old = session.start()
        new = session.start()
        assert session.stop(old) is False
        assert session.running is True
        assert session.stop(new) is True

    def test_restart_supersedes_previous_token(self) -> None:
        session = SpeedTestSession()
        old = session.start()
        new = session.start()
        assert old.cancelled is True
        assert session.is_current(old) is False
        assert session.is_current(new) is True
        assert old.run_id != new.run_id


@pytest.mark.unit
class TestSessionSamples:
    """Tests for add_speed and average."""

    def test_average_empty_is_zero(self) -> None:
        assert SpeedTestSession().average() == 0.0

    @pytest.mark.parametrize("samples", [[5.0], [1.0, 2.0, 3.0], [940.5, 938.1, 941.7, 0.0]])
    def test_average_is_mean(self, samples) -> None:
        session = SpeedTestSession()
        session.start()
        for value in samples:
            assert session.add_speed(value) is True
        assert session.average() == pytest.approx(sum(samples) / len(samples))

    def test_add_speed_after_stop_is_discarded(self) -> None:
        session = SpeedTestSession()
        session.start()
        session.add_speed(100.0)
        session.stop()
        assert session.add_speed(1.0) is False
        assert session.samples == [100.0]
        assert session.average() == 100.0

    def test_add_speed_with_stale_token_is_discarded(self) -> None:
        session = SpeedTestSession()
        old = session.start()
        new = session.start()
        assert session.add_speed(50.0, old) is False
        assert session.add_speed(70.0, new) is True
        assert session.samples == [70.0]

    def test_restart_clears_previous_samples(self) -> None:
        session = SpeedTestSession()
        session.start()
        session.add_speed(10.0)
        session.add_speed(20.0)
        session.stop()

        session.start()
        assert session.samples == []
        assert session.average() == 0.0
        session.add_speed(90.0)
        assert session.average() == 90.0

    def test_samples_returns_copy(self) -> None:
        session = SpeedTestSession()
        session.start()
        session.add_speed(1.0)
        session.samples.append(99.0)
        assert session.samples == [1.0]

    def test_snapshot(self) -> None:
        session = SpeedTestSession()
        session.start()
        session.add_speed(10.0)
        session.add_speed(20.0)
        snapshot = session.snapshot()
        assert snapshot["running"] is True
        assert snapshot["sample_count"] == 2
        assert snapshot["average_mbps"] == 15.0
