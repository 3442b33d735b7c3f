"""
Prometheus-compatible metrics for observability.

Tracks key indicators of the aggregation layer:
- Provider searches (by outcome)
- Booking enrichment misses (image / name lookups that found nothing)
- Beta test transitions (by status and role)
- Dashboard widget failures
- Backend and geocoding errors

Usage:
    from kmerbeauty.lib.metrics import get_metrics_collector

    metrics = get_metrics_collector()
    metrics.increment_provider_searches(outcome="ok")
    metrics.increment_dashboard_widget_failures(widget="top_provider")

    # Export for Prometheus
    prometheus_output = metrics.export_prometheus()
"""

from typing import Dict, Optional, Tuple
from threading import Lock


class MetricsCollector:
    """
    Prometheus-style metrics collector for the marketplace API.

    Counters:
    - provider_searches_total: Provider locator calls (labels: outcome)
    - booking_enrichment_misses_total: Unresolved images/names (labels: kind)
    - beta_test_transitions_total: Tester status changes (labels: status, role)
    - dashboard_widget_failures_total: Dashboard widgets left at default (labels: widget)
    - backend_errors_total: Failed backend calls (labels: operation, kind)
    - geocoding_requests_total: Nominatim lookups (labels: outcome)

    Thread-safe for concurrent increments.
    """

    def __init__(self):
        self._lock = Lock()

        # Counters: key = (metric_name, labels_tuple), value = count
        self._counters: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], int] = {}

    def _get_counter_key(self, metric_name: str, labels: Dict[str, str]) -> Tuple[str, Tuple[Tuple[str, str], ...]]:
        """Generate unique key for counter with sorted labels."""
        sorted_labels = tuple(sorted(labels.items()))
        return (metric_name, sorted_labels)

    def _increment(self, metric_name: str, labels: Dict[str, str], amount: int = 1):
        """Thread-safe increment of counter."""
        key = self._get_counter_key(metric_name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def _get_value(self, metric_name: str, labels: Dict[str, str]) -> int:
        """Get current value of counter."""
        key = self._get_counter_key(metric_name, labels)
        with self._lock:
            return self._counters.get(key, 0)

    # ===== Aggregation Metrics =====

    def increment_provider_searches(self, outcome: str, amount: int = 1):
        """
        Increment provider locator counter.

        Args:
            outcome: ok, empty, failed
            amount: Increment amount (default 1)
        """
        self._increment("provider_searches_total", {"outcome": outcome.lower()}, amount)

    def increment_enrichment_misses(self, kind: str, amount: int = 1):
        """Increment booking enrichment misses (kind: image, therapist_name)."""
        self._increment("booking_enrichment_misses_total", {"kind": kind.lower()}, amount)

    def increment_beta_transitions(self, status: str, role: str, amount: int = 1):
        """
        Increment beta test status changes.

        Args:
            status: Target status (working, broken, reset)
            role: Tester role (client, provider)
            amount: Increment amount
        """
        labels = {
            "status": status.lower(),
            "role": role.lower(),
        }
        self._increment("beta_test_transitions_total", labels, amount)

    def increment_dashboard_widget_failures(self, widget: str, amount: int = 1):
        """Increment dashboard widgets that fell back to their default."""
        self._increment("dashboard_widget_failures_total", {"widget": widget.lower()}, amount)

    # ===== Error Metrics =====

    def increment_backend_errors(self, operation: str, kind: str, amount: int = 1):
        """
        Increment failed backend calls.

        Args:
            operation: Repository operation name
            kind: Error kind (not_found, network_error, validation_error, unknown)
            amount: Increment amount
        """
        labels = {
            "operation": operation.lower(),
            "kind": kind.lower(),
        }
        self._increment("backend_errors_total", labels, amount)

    def increment_geocoding_requests(self, outcome: str, amount: int = 1):
        """Increment Nominatim lookups (outcome: ok, cached, failed)."""
        self._increment("geocoding_requests_total", {"outcome": outcome.lower()}, amount)

    # ===== Export =====

    def export_prometheus(self) -> str:
        """
        Export all metrics in Prometheus text format.

        Returns:
            Prometheus-compatible text output
        """
        output_lines = []

        # Group counters by metric name
        metrics_by_name: Dict[str, list] = {}
        with self._lock:
            for (metric_name, labels_tuple), value in self._counters.items():
                if metric_name not in metrics_by_name:
                    metrics_by_name[metric_name] = []
                metrics_by_name[metric_name].append((dict(labels_tuple), value))

        # Generate Prometheus format for each metric
        for metric_name in sorted(metrics_by_name.keys()):
            # Add HELP and TYPE comments
            help_text = self._get_help_text(metric_name)
            output_lines.append(f"# HELP {metric_name} {help_text}")
            output_lines.append(f"# TYPE {metric_name} counter")

            # Add metric lines
            for labels_dict, value in sorted(metrics_by_name[metric_name], key=lambda x: str(x[0])):
                labels_str = ",".join([f'{k}="{v}"' for k, v in sorted(labels_dict.items())])
                output_lines.append(f"{metric_name}{{{labels_str}}} {value}")

            output_lines.append("")  # Blank line between metrics

        return "\n".join(output_lines)

    def _get_help_text(self, metric_name: str) -> str:
        """Get help text for metric."""
        help_texts = {
            "provider_searches_total": "Total number of nearby-provider searches",
            "booking_enrichment_misses_total": "Booking images or names that could not be resolved",
            "beta_test_transitions_total": "Total number of beta test status changes",
            "dashboard_widget_failures_total": "Dashboard widgets rendered with their default value",
            "backend_errors_total": "Total number of failed backend calls",
            "geocoding_requests_total": "Total number of geocoding lookups",
        }
        return help_texts.get(metric_name, "Counter metric")

    def get_counter_value(self, metric_name: str, labels: Dict[str, str]) -> int:
        """
        Get current value of a specific counter.

        Args:
            metric_name: Name of the metric
            labels: Label filters

        Returns:
            Current counter value
        """
        return self._get_value(metric_name, labels)

    def reset_all(self):
        """Reset all counters (for testing)."""
        with self._lock:
            self._counters.clear()


# Global singleton instance
_metrics_collector: Optional[MetricsCollector] = None
_metrics_lock = Lock()


def get_metrics_collector() -> MetricsCollector:
    """
    Get global metrics collector singleton.

    Returns:
        MetricsCollector instance
    """
    global _metrics_collector
    if _metrics_collector is None:
        with _metrics_lock:
            if _metrics_collector is None:
                _metrics_collector = MetricsCollector()
    return _metrics_collector


def reset_metrics():
    """Reset global metrics collector (for testing)."""
    global _metrics_collector
    with _metrics_lock:
        if _metrics_collector is not None:
            _metrics_collector.reset_all()
