"""
Prometheus Metrics for the Validation Engine

Counters and histograms describing validation throughput: how many field runs
completed, how many rules failed per severity, how many rules raised, how many
debounced runs were superseded, and how business rules fared.

Each ``ValidationMetrics`` instance owns a private ``CollectorRegistry`` so
several engines (and test cases) can coexist without duplicate-registration
errors. Hosts that already expose a registry can pass it in.
"""

import time
from contextlib import contextmanager
from typing import Iterator, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

import structlog
logger = structlog.get_logger("monitoring.metrics")


class ValidationMetrics:
    """
    Prometheus collectors for one validation engine.

    Example:
        metrics = ValidationMetrics()
        engine = FormValidationEngine(metrics=metrics)
        ...
        print(metrics.export().decode())
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None, namespace: str = 'formguard'):
        self.registry = registry or CollectorRegistry()

        self.field_validations_total = Counter(
            'field_validations_total',
            'Completed field validation runs by outcome',
            ['field', 'outcome'],
            namespace=namespace,
            registry=self.registry
        )

        self.rule_failures_total = Counter(
            'rule_failures_total',
            'Failed validation rules by severity',
            ['rule_id', 'severity'],
            namespace=namespace,
            registry=self.registry
        )

        self.rule_exceptions_total = Counter(
            'rule_exceptions_total',
            'Validation rules that raised instead of returning a result',
            ['rule_id', 'phase'],
            namespace=namespace,
            registry=self.registry
        )

        self.superseded_runs_total = Counter(
            'superseded_runs_total',
            'Debounced or in-flight runs discarded for a newer value',
            ['field'],
            namespace=namespace,
            registry=self.registry
        )

        self.business_rule_outcomes_total = Counter(
            'business_rule_outcomes_total',
            'Business rule evaluations by outcome',
            ['rule_id', 'outcome'],
            namespace=namespace,
            registry=self.registry
        )

        self.field_validation_duration_seconds = Histogram(
            'field_validation_duration_seconds',
            'Time spent evaluating the rules of one field',
            ['field'],
            buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
            namespace=namespace,
            registry=self.registry
        )

    # ------------------------------------------------------------------
    # recording helpers
    # ------------------------------------------------------------------

    def record_field_run(self, field: str, has_errors: bool) -> None:
        outcome = 'invalid' if has_errors else 'valid'
        self.field_validations_total.labels(field=field, outcome=outcome).inc()

    def record_rule_failure(self, rule_id: str, severity: str) -> None:
        self.rule_failures_total.labels(rule_id=rule_id, severity=severity).inc()

    def record_rule_exception(self, rule_id: str, phase: str) -> None:
        self.rule_exceptions_total.labels(rule_id=rule_id, phase=phase).inc()

    def record_superseded(self, field: str) -> None:
        self.superseded_runs_total.labels(field=field).inc()

    def record_business_rule(self, rule_id: str, is_valid: bool) -> None:
        outcome = 'valid' if is_valid else 'invalid'
        self.business_rule_outcomes_total.labels(rule_id=rule_id, outcome=outcome).inc()

    @contextmanager
    def time_field(self, field: str) -> Iterator[None]:
        """Observe the wall time of the enclosed block for ``field``."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.field_validation_duration_seconds.labels(field=field).observe(
                time.perf_counter() - start
            )

    def get_sample(self, name: str, labels: Optional[dict] = None) -> float:
        """Current value of a sample, 0.0 when it has not been recorded yet."""
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0

    def export(self) -> bytes:
        """Prometheus text exposition of this registry."""
        return generate_latest(self.registry)


__all__ = ['ValidationMetrics']
