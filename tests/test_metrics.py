"""
whisperp2p/tests/test_metrics.py

Tests for metrics collection and nickname labels.
"""

from unittest.mock import Mock


class TestMetricsCollector:
    """Test counters, gauges and Prometheus output."""

    def test_counters_start_at_zero(self):
        """Test a fresh collector without a node."""
        from whisperp2p.metrics import MetricsCollector

        stats = MetricsCollector().get_stats()

        assert stats["connected_peers"] == 0
        assert stats["seen_messages"] == 0
        assert stats["messages_received"] == 0
        assert stats["dial_attempts"] == 0
        assert stats["uptime_seconds"] >= 0

    def test_record_methods(self):
        """Test each record_* call updates its counter."""
        from whisperp2p.metrics import MetricsCollector

        metrics = MetricsCollector()
        metrics.record_originated()
        metrics.record_received()
        metrics.record_received()
        metrics.record_duplicate()
        metrics.record_broadcast(delivered=3, dropped=1)
        metrics.record_message_sent(100)
        metrics.record_dial(success=True)
        metrics.record_dial(success=False)

        stats = metrics.get_stats()
        assert stats["messages_originated"] == 1
        assert stats["messages_received"] == 2
        assert stats["messages_duplicate"] == 1
        assert stats["broadcast_delivered"] == 3
        assert stats["broadcast_dropped"] == 1
        assert stats["messages_sent"] == 1
        assert stats["bytes_sent"] == 100
        assert stats["dial_attempts"] == 2
        assert stats["dial_failures"] == 1

        metrics.reset_counters()
        assert metrics.get_stats()["messages_received"] == 0

    def test_gauges_read_from_node(self):
        """Test gauges reflect the node's registry and seen cache."""
        from whisperp2p.metrics import MetricsCollector

        node = Mock()
        node.connected_peers = 2
        node.seen_cache = ["a", "b", "c"]
        node.local_addr = "10.0.0.1:9000"

        stats = MetricsCollector(node).get_stats()

        assert stats["connected_peers"] == 2
        assert stats["seen_messages"] == 3

    def test_collect_prometheus_format(self):
        """Test the text exposition output."""
        from whisperp2p.metrics import MetricsCollector

        node = Mock()
        node.connected_peers = 1
        node.seen_cache = []
        node.local_addr = "10.0.0.1:9000"
        metrics = MetricsCollector(node)
        metrics.record_duplicate()

        output = metrics.collect()

        assert "# TYPE whisperp2p_connected_peers gauge" in output
        assert "whisperp2p_connected_peers 1" in output
        assert "# TYPE whisperp2p_messages_duplicate_total counter" in output
        assert "whisperp2p_messages_duplicate_total 1" in output
        assert 'whisperp2p_info{addr="10.0.0.1:9000"} 1' in output
        assert output.endswith("\n")


class TestNicknameBook:
    """Test display labels."""

    def test_label_precedence(self):
        """Test local address, then nickname, then raw address."""
        from whisperp2p.nicknames import NicknameBook

        book = NicknameBook("10.0.0.1:9000")
        book.set("10.0.0.2:9000", "bob")

        assert book.label("10.0.0.1:9000") == "you"
        assert book.label("10.0.0.2:9000") == "bob"
        assert book.label("10.0.0.3:9000") == "10.0.0.3:9000"
        assert book.get("10.0.0.3:9000") is None

    def test_nickname_can_be_replaced(self):
        """Test setting a nickname twice keeps the latest."""
        from whisperp2p.nicknames import NicknameBook

        book = NicknameBook()
        book.set("10.0.0.2:9000", "bob")
        book.set("10.0.0.2:9000", "robert")

        assert book.label("10.0.0.2:9000") == "robert"
