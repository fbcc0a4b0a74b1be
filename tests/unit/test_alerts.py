"""Unit tests for threshold alert rules."""

from datetime import timedelta

import pytest

from models.data_models import SystemMetrics
from services.alerts import AlertEvaluator


def snapshot(error_rate=0.0, latency=100.0, rpm=10.0) -> SystemMetrics:
    return SystemMetrics(
        total_requests=600,
        error_rate=error_rate,
        average_response_time=latency,
        requests_per_minute=rpm,
    )


@pytest.fixture
def evaluator() -> AlertEvaluator:
    return AlertEvaluator()


@pytest.mark.unit
class TestErrorRateRule:

    def test_high_error_rate_is_single_error_alert(self, evaluator, now):
        alerts = evaluator.evaluate(snapshot(error_rate=6.0), now)

        assert len(alerts) == 1
        assert alerts[0].severity == "error"
        assert "high error rate" in alerts[0].message.lower()
        assert "6.0%" in alerts[0].message

    def test_elevated_error_rate_is_single_warning(self, evaluator, now):
        alerts = evaluator.evaluate(snapshot(error_rate=3.0), now)

        assert len(alerts) == 1
        assert alerts[0].severity == "warning"
        assert "elevated error rate" in alerts[0].message.lower()

    def test_low_error_rate_emits_nothing(self, evaluator, now):
        assert evaluator.evaluate(snapshot(error_rate=1.0), now) == []

    @pytest.mark.parametrize("rate", [2.0, 5.0])
    def test_thresholds_are_strict(self, evaluator, now, rate):
        alerts = evaluator.evaluate(snapshot(error_rate=rate), now)
        expected = [] if rate == 2.0 else ["warning"]
        assert [a.severity for a in alerts] == expected


@pytest.mark.unit
class TestLatencyAndLoadRules:

    def test_slow_responses_warn(self, evaluator, now):
        alerts = evaluator.evaluate(snapshot(latency=2500.5), now)

        assert [a.severity for a in alerts] == ["warning"]
        assert alerts[0].message == "High average response time: 2500.5ms"

    def test_low_activity_is_info(self, evaluator, now):
        alerts = evaluator.evaluate(snapshot(rpm=0.5), now)

        assert [a.severity for a in alerts] == ["info"]
        assert alerts[0].message == "Low system activity detected"

    def test_empty_snapshot_reports_low_activity_only(self, evaluator, now):
        alerts = evaluator.evaluate(SystemMetrics(), now)
        assert [a.severity for a in alerts] == ["info"]

    def test_high_load_warns(self, evaluator, now):
        alerts = evaluator.evaluate(snapshot(rpm=120.25), now)

        assert [a.severity for a in alerts] == ["warning"]
        assert "120.25 requests/minute" in alerts[0].message

    def test_rules_fire_independently(self, evaluator, now):
        alerts = evaluator.evaluate(snapshot(error_rate=9.0, latency=3000.0, rpm=150.0), now)

        assert [a.severity for a in alerts] == ["error", "warning", "warning"]


@pytest.mark.unit
class TestAlertRecords:

    def test_records_are_unresolved_and_stamped(self, evaluator, now):
        alert = evaluator.evaluate(snapshot(error_rate=6.0), now)[0]

        assert alert.resolved is False
        assert alert.timestamp == now
        assert alert.id == f"alert_error_rate_{int(now.timestamp() * 1000)}"

    def test_stateless_between_calls(self, evaluator, now):
        metrics = snapshot(error_rate=6.0, rpm=0.2)
        first = evaluator.evaluate(metrics, now)
        second = evaluator.evaluate(metrics, now + timedelta(seconds=5))

        assert [(a.severity, a.message) for a in first] == [(a.severity, a.message) for a in second]
        assert first[0].id != second[0].id

    def test_to_dict_shape(self, evaluator, now):
        payload = evaluator.evaluate(snapshot(rpm=0.0), now)[0].to_dict()

        assert payload == {
            "id": f"alert_low_activity_{int(now.timestamp() * 1000)}",
            "type": "info",
            "message": "Low system activity detected",
            "timestamp": now.isoformat(),
            "resolved": False,
        }
