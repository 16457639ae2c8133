"""
Tests for metrics collection and Prometheus export.
"""

import threading

from broadcast_relay.components.metrics.collector import MetricsCollector
from broadcast_relay.components.metrics.prometheus import PrometheusFormatter


class TestMetricsCollector:
    """Counter bookkeeping."""

    def test_snapshot_groups(self):
        metrics = MetricsCollector()
        metrics.increment_connections_accepted()
        metrics.increment_messages_received("offer")
        metrics.increment_messages_received("offer")
        metrics.increment_decode_errors()
        metrics.increment_probes_sent(3)

        snapshot = metrics.get_snapshot()

        assert snapshot["connections"]["accepted"] == 1
        assert snapshot["messages"]["received"] == 3
        assert snapshot["messages"]["by_type"] == {"offer": 2}
        assert snapshot["liveness"]["probes_sent"] == 3

    def test_snapshot_is_a_copy(self):
        metrics = MetricsCollector()
        metrics.increment_messages_received("ping")

        snapshot = metrics.get_snapshot()
        snapshot["messages"]["by_type"]["ping"] = 100

        assert metrics.get_snapshot()["messages"]["by_type"]["ping"] == 1

    def test_thread_safe_increments(self):
        metrics = MetricsCollector()

        def work():
            for _ in range(1000):
                metrics.increment_send_failures()

        threads = [threading.Thread(target=work) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert metrics.get_snapshot()["routing"]["send_failures"] == 4000


class TestPrometheusFormatter:
    """Exposition text."""

    def test_format(self):
        metrics = MetricsCollector()
        metrics.increment_messages_received("register-viewer")
        metrics.increment_evictions()
        stats = {"open_connections": 2, "viewer_count": 1, "broadcaster_active": True}

        text = PrometheusFormatter().format_all_metrics(stats, metrics.get_snapshot())

        assert "# TYPE broadcast_relay_viewers gauge" in text
        assert "broadcast_relay_connections_open 2" in text
        assert "broadcast_relay_broadcaster_active 1" in text
        assert "broadcast_relay_liveness_evictions_total 1" in text
        assert 'broadcast_relay_messages_received_total{type="register-viewer"} 1' in text
        assert text.endswith("\n")

    def test_missing_values_default_to_zero(self):
        text = PrometheusFormatter().format_all_metrics({}, {})

        assert "broadcast_relay_viewers 0" in text
        assert "broadcast_relay_send_failures_total 0" in text
