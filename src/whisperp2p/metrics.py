"""
whisperp2p/metrics.py

Prometheus metrics collection for whisperp2p.

Counts message origination, receipt, duplicate suppression and per-peer
fan-out so flood behaviour can be watched from outside the process.
"""

import time
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from .node import Node

logger = logging.getLogger("whisperp2p.metrics")


class MetricsCollector:
    """
    Prometheus metrics collector for a whisperp2p node.

    Components call the ``record_*`` methods; ``collect()`` renders the
    current values in Prometheus text format.

    Usage:
        metrics = MetricsCollector(node)
        prometheus_output = metrics.collect()
    """

    METRICS = {
        "whisperp2p_connected_peers": {
            "type": "gauge",
            "help": "Number of registered outbound peer links",
        },
        "whisperp2p_seen_messages": {
            "type": "gauge",
            "help": "Number of message ids held in the seen cache",
        },
        "whisperp2p_messages_originated_total": {
            "type": "counter",
            "help": "Messages created on this node",
        },
        "whisperp2p_messages_received_total": {
            "type": "counter",
            "help": "New messages received from peers",
        },
        "whisperp2p_messages_duplicate_total": {
            "type": "counter",
            "help": "Received messages dropped as already seen",
        },
        "whisperp2p_broadcast_delivered_total": {
            "type": "counter",
            "help": "Messages handed to a peer channel",
        },
        "whisperp2p_broadcast_dropped_total": {
            "type": "counter",
            "help": "Messages dropped because a peer channel was full",
        },
        "whisperp2p_messages_sent_total": {
            "type": "counter",
            "help": "Messages written to outbound connections",
        },
        "whisperp2p_bytes_sent_total": {
            "type": "counter",
            "help": "Bytes written to outbound connections",
        },
        "whisperp2p_dial_attempts_total": {
            "type": "counter",
            "help": "Outbound connection attempts",
        },
        "whisperp2p_dial_failures_total": {
            "type": "counter",
            "help": "Outbound connection attempts that failed",
        },
        "whisperp2p_uptime_seconds": {
            "type": "counter",
            "help": "Node uptime in seconds",
        },
    }

    def __init__(self, node: Optional["Node"] = None):
        """
        Initialize metrics collector.

        Args:
            node: Node to read gauges from (optional; counters work without it)
        """
        self.node = node
        self._start_time = time.time()
        self.reset_counters()

    def reset_counters(self) -> None:
        """Reset all counters (useful for testing)."""
        self._originated = 0
        self._received = 0
        self._duplicates = 0
        self._delivered = 0
        self._dropped = 0
        self._messages_sent = 0
        self._bytes_sent = 0
        self._dial_attempts = 0
        self._dial_failures = 0

    def record_originated(self) -> None:
        self._originated += 1

    def record_received(self) -> None:
        self._received += 1

    def record_duplicate(self) -> None:
        self._duplicates += 1

    def record_broadcast(self, delivered: int, dropped: int) -> None:
        """Record the outcome of one fan-out."""
        self._delivered += delivered
        self._dropped += dropped

    def record_message_sent(self, byte_size: int = 0) -> None:
        """Record a message written to the wire."""
        self._messages_sent += 1
        self._bytes_sent += byte_size

    def record_dial(self, success: bool) -> None:
        self._dial_attempts += 1
        if not success:
            self._dial_failures += 1

    def _gauges(self) -> Dict[str, float]:
        if self.node is None:
            return {"connected_peers": 0, "seen_messages": 0}
        return {
            "connected_peers": self.node.connected_peers,
            "seen_messages": len(self.node.seen_cache),
        }

    def collect(self) -> str:
        """
        Collect all metrics and return in Prometheus format.

        Returns:
            Prometheus-formatted metrics string
        """
        lines = []

        def add_metric(name: str, value: float, labels: Dict[str, str] = None):
            metric_def = self.METRICS.get(name, {})
            lines.append(f"# HELP {name} {metric_def.get('help', '')}")
            lines.append(f"# TYPE {name} {metric_def.get('type', 'gauge')}")
            if labels:
                label_str = ",".join(f'{k}="{v}"' for k, v in labels.items())
                lines.append(f"{name}{{{label_str}}} {value}")
            else:
                lines.append(f"{name} {value}")

        gauges = self._gauges()
        add_metric("whisperp2p_connected_peers", gauges["connected_peers"])
        add_metric("whisperp2p_seen_messages", gauges["seen_messages"])
        add_metric("whisperp2p_messages_originated_total", self._originated)
        add_metric("whisperp2p_messages_received_total", self._received)
        add_metric("whisperp2p_messages_duplicate_total", self._duplicates)
        add_metric("whisperp2p_broadcast_delivered_total", self._delivered)
        add_metric("whisperp2p_broadcast_dropped_total", self._dropped)
        add_metric("whisperp2p_messages_sent_total", self._messages_sent)
        add_metric("whisperp2p_bytes_sent_total", self._bytes_sent)
        add_metric("whisperp2p_dial_attempts_total", self._dial_attempts)
        add_metric("whisperp2p_dial_failures_total", self._dial_failures)
        add_metric("whisperp2p_uptime_seconds", time.time() - self._start_time)

        local_addr = (self.node.local_addr if self.node else None) or "unknown"
        lines.append("# HELP whisperp2p_info Node information")
        lines.append("# TYPE whisperp2p_info gauge")
        lines.append(f'whisperp2p_info{{addr="{local_addr}"}} 1')

        return "\n".join(lines) + "\n"

    def get_stats(self) -> Dict[str, Any]:
        """
        Get metrics as a dictionary.

        Returns:
            Dictionary of metric values
        """
        stats: Dict[str, Any] = dict(self._gauges())
        stats.update({
            "messages_originated": self._originated,
            "messages_received": self._received,
            "messages_duplicate": self._duplicates,
            "broadcast_delivered": self._delivered,
            "broadcast_dropped": self._dropped,
            "messages_sent": self._messages_sent,
            "bytes_sent": self._bytes_sent,
            "dial_attempts": self._dial_attempts,
            "dial_failures": self._dial_failures,
            "uptime_seconds": time.time() - self._start_time,
        })
        return stats
