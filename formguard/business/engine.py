"""
Form Validation Engine

Runtime that owns a form's rules and drives every validation run:

    value change -> store update -> debounce scheduled -> sync rules run ->
    async rules join -> field state published -> dependents re-validated

Per field the engine moves through

    UNTOUCHED -> PENDING (value set) -> VALIDATING (debounce elapsed) ->
    VALIDATED (sync + async complete) -> PENDING (next change)

Every run carries the field's generation token from the scheduler; a run
whose token is no longer current when it finishes is discarded, so the state
of a field always reflects its latest value (last write wins).

Rule failures are data, never exceptions. A rule that raises, or an async
rule that exceeds the configured timeout, contributes the generic
``"Validation error occurred"`` message; the exception itself is only logged.

Example:
    engine = FormValidationEngine({'email': ''}, config=EngineConfig(debounce_ms=300))
    engine.add_field_rules('email', [required(), email()])
    engine.set_field_value('email', 'user@gmial.com')
    await engine.wait_for_idle()
    engine.get_field_state('email').errors
    # ['Please enter a valid email address. Did you mean user@gmail.com?']
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .business_rules import BusinessRuleEngine
from .exceptions import GENERIC_VALIDATION_ERROR, RuleRegistrationError
from .models import (
    FieldValidationState, FormValidationState, FormValues, Severity, ValidationResult,
    ValidationRule
)
from .scheduler import DebounceScheduler
from .store import FormStateStore, StateListener
from formguard.config.settings import EngineConfig
from formguard.monitoring.metrics import ValidationMetrics

import structlog
logger = structlog.get_logger("business.engine")


class FieldStatus(str, Enum):
    UNTOUCHED = "untouched"
    PENDING = "pending"
    VALIDATING = "validating"
    VALIDATED = "validated"


@dataclass
class RuleOutcome:
    """Messages collected from one field's rules, by bucket."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    info: List[str] = field(default_factory=list)

    def route(self, rule: ValidationRule, result: ValidationResult) -> None:
        """File ``result`` under the rule's severity; advisory messages always merge."""
        if not result.is_valid:
            message = result.message or rule.message
            if rule.severity is Severity.ERROR:
                self.errors.append(message)
            elif rule.severity is Severity.WARNING:
                self.warnings.append(message)
            else:
                self.info.append(message)
        self.warnings.extend(result.warnings)
        self.info.extend(result.info)


# ============================================================================
# RULE EVALUATION
# ============================================================================

def _coerce_result(result: Any) -> ValidationResult:
    if isinstance(result, ValidationResult):
        return result
    if isinstance(result, Mapping):
        return ValidationResult.model_validate(result)
    raise TypeError(f"Rule returned {type(result).__name__}, expected ValidationResult")


async def evaluate_rules(
    field_name: str,
    rules: Sequence[ValidationRule],
    value: Any,
    form_values: FormValues,
    timeout: Optional[float] = None,
    metrics: Optional[ValidationMetrics] = None
) -> RuleOutcome:
    """
    Evaluate ``rules`` for one field value.

    Synchronous validators run first, in registration order. Every async
    validator then runs concurrently and all of them are awaited; there is no
    short-circuit on the first failure.

    Args:
        field_name: Field the rules belong to (for logging and metrics)
        rules: Rules in registration order
        value: Value under validation
        form_values: Snapshot of all form values
        timeout: Optional per-rule bound for async validators, in seconds
        metrics: Optional metrics sink

    Returns:
        Collected errors, warnings and info
    """
    outcome = RuleOutcome()

    def record_failure(rule: ValidationRule, phase: str, error: BaseException) -> None:
        outcome.errors.append(GENERIC_VALIDATION_ERROR)
        logger.error("Validation rule failed to evaluate",
                     field_name=field_name,
                     rule_id=rule.id,
                     phase=phase,
                     error_type=type(error).__name__,
                     exc_info=error)
        if metrics is not None:
            metrics.record_rule_exception(rule.id, phase)

    def route(rule: ValidationRule, result: ValidationResult) -> None:
        outcome.route(rule, result)
        if metrics is not None and not result.is_valid:
            metrics.record_rule_failure(rule.id, rule.severity.value)

    for rule in rules:
        try:
            result = _coerce_result(rule.validate(value, form_values))
        except Exception as e:
            record_failure(rule, 'sync', e)
            continue
        route(rule, result)

    async_rules = [rule for rule in rules if rule.validate_async is not None]
    if not async_rules:
        return outcome

    async def run_async(rule: ValidationRule) -> ValidationResult:
        pending = rule.validate_async(value, form_values)
        if timeout is not None:
            return _coerce_result(await asyncio.wait_for(pending, timeout))
        return _coerce_result(await pending)

    results = await asyncio.gather(
        *(run_async(rule) for rule in async_rules),
        return_exceptions=True
    )

    for rule, result in zip(async_rules, results):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            # a requires_async rule never passes on its sync result alone
            record_failure(rule, 'async', result)
            continue
        route(rule, result)

    return outcome


# ============================================================================
# ENGINE
# ============================================================================

class FormValidationEngine:
    """
    Validation runtime of a single form.

    All mutation of values and field state goes through the engine's
    ``FormStateStore``; reads return copies.

    Args:
        initial_values: Initial form values; their keys define the first
            entries of the declared field order
        config: Runtime options, defaults to ``EngineConfig()``
        business_rules: Optional business rule engine consulted by
            ``validate_form``
        metrics: Optional Prometheus collectors; a private set is created
            when omitted
    """

    def __init__(
        self,
        initial_values: Optional[Mapping[str, Any]] = None,
        config: Optional[EngineConfig] = None,
        business_rules: Optional[BusinessRuleEngine] = None,
        metrics: Optional[ValidationMetrics] = None
    ):
        self.config = config or EngineConfig()
        self.business_rules = business_rules
        self.metrics = metrics or ValidationMetrics()

        self._store = FormStateStore(initial_values)
        self._rules: Dict[str, List[ValidationRule]] = {}
        self._field_order: List[str] = list(self._store.field_names)
        self._validated: Set[str] = set()
        self._scheduler = DebounceScheduler(
            delay_ms=self.config.debounce_ms,
            on_superseded=self.metrics.record_superseded
        )

        logger.debug("Form validation engine created",
                     fields=len(self._field_order),
                     debounce_ms=self.config.debounce_ms)

    async def __aenter__(self) -> 'FormValidationEngine':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # rule registration
    # ------------------------------------------------------------------

    def add_field_rules(self, field_name: str, rules: Iterable[ValidationRule]) -> None:
        """
        Set the rules of ``field_name``.

        Each call replaces the field's rule list, so registering the same
        rules again on every render never duplicates them. Rules sharing a
        factory id (two ``pattern`` rules, say) are all kept; only the very
        same rule object listed twice is registered once.

        Raises:
            RuleRegistrationError: If an item is not a ValidationRule
        """
        registered: List[ValidationRule] = []

        for rule in rules:
            if not isinstance(rule, ValidationRule):
                raise RuleRegistrationError(
                    f"Expected ValidationRule, got {type(rule).__name__}",
                    error_code="RULE_TYPE_INVALID",
                    field_name=field_name
                )
            if any(rule is known for known in registered):
                continue
            registered.append(rule)

        replaced = field_name in self._rules
        self._rules[field_name] = registered
        self._declare(field_name)
        self._store.ensure_field(field_name)

        logger.debug("Field rules registered",
                     field_name=field_name,
                     rule_ids=[rule.id for rule in registered],
                     replaced=replaced)

    def rules_for(self, field_name: str) -> Tuple[ValidationRule, ...]:
        return tuple(self._rules.get(field_name, ()))

    def dependents_of(self, field_name: str) -> List[str]:
        """Fields, in declared order, with a rule depending on ``field_name``."""
        return [
            name for name in self._field_order
            if name != field_name and any(
                field_name in rule.dependencies for rule in self._rules.get(name, ())
            )
        ]

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    @property
    def values(self) -> Dict[str, Any]:
        return self._store.values

    @property
    def state(self) -> FormValidationState:
        return self._store.snapshot()

    @property
    def field_order(self) -> List[str]:
        return list(self._field_order)

    def get_field_state(self, field_name: str) -> Optional[FieldValidationState]:
        return self._store.get_field(field_name)

    def field_status(self, field_name: str) -> FieldStatus:
        current = self._store.get_field(field_name)
        if current is None or not current.has_been_touched:
            return FieldStatus.UNTOUCHED
        if current.is_validating:
            return FieldStatus.VALIDATING
        if self._scheduler.is_pending(field_name) or field_name not in self._validated:
            return FieldStatus.PENDING
        return FieldStatus.VALIDATED

    def field_feedback(self, field_name: str) -> Optional[FieldValidationState]:
        """
        Field state as a renderer should show it.

        Warnings and info are emptied when ``show_warnings`` / ``show_info``
        are disabled; errors are always kept.
        """
        current = self._store.get_field(field_name)
        if current is None:
            return None
        hidden = {}
        if not self.config.show_warnings:
            hidden['warnings'] = []
        if not self.config.show_info:
            hidden['info'] = []
        return current.model_copy(update=hidden) if hidden else current

    def first_invalid_field(self) -> Optional[str]:
        """First field in declared order that currently has errors."""
        for name in self._field_order:
            current = self._store.get_field(name)
            if current is not None and current.errors:
                return name
        return None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self._store.subscribe(listener)

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    def set_field_value(self, field_name: str, value: Any, validate: bool = True) -> None:
        """
        Store ``value`` and, when validating on change, schedule a debounced run.

        With ``validate=False`` nothing is scheduled and any pending or
        in-flight run of the field is discarded; draft restore uses this to
        load values silently.

        Must be called from the event loop thread when a run gets scheduled.
        """
        self._declare(field_name)
        self._store.set_value(field_name, value)

        if validate and self.config.validate_on_change:
            self._scheduler.schedule(
                field_name,
                lambda generation: self._debounced_run(field_name, generation)
            )
            return

        cancelled = self._scheduler.cancel(field_name)
        self._scheduler.next_generation(field_name)
        self._validated.discard(field_name)
        current = self._store.get_field(field_name)
        if cancelled or current.is_validating:
            self._store.update_field(field_name, is_validating=False)

    def focus_field(self, field_name: str) -> None:
        self._declare(field_name)
        self._store.update_field(field_name, has_been_focused=True)

    async def blur_field(self, field_name: str) -> Optional[FieldValidationState]:
        """Validate the field's current value when ``validate_on_blur`` is enabled."""
        if not self.config.validate_on_blur:
            return self.get_field_state(field_name)
        return await self.validate_field(field_name, self._store.get_value(field_name))

    # ------------------------------------------------------------------
    # validation
    # ------------------------------------------------------------------

    async def validate_field(
        self,
        field_name: str,
        value: Any,
        should_validate: bool = True
    ) -> Optional[FieldValidationState]:
        """
        Validate ``value`` for ``field_name`` right away, without debouncing.

        A pending debounced run of the field is replaced by this run, which
        then also re-validates the field's dependents.

        Returns:
            The published field state, or None when a newer run superseded
            this one before it finished
        """
        if not should_validate:
            return self.get_field_state(field_name)

        self._declare(field_name)
        replaced_pending = self._scheduler.cancel(field_name)
        if replaced_pending:
            self.metrics.record_superseded(field_name)

        generation = self._scheduler.next_generation(field_name)
        published = await self._run_field(field_name, value, generation)
        if published is not None and replaced_pending:
            await self._revalidate_dependents(field_name)
        return published

    async def validate_form(self) -> bool:
        """
        Validate the whole form for submission.

        Every field carrying rules and every field known to the store is
        re-validated concurrently (when ``validate_on_submit`` is enabled),
        business rules then fill the global messages, and the aggregate state
        is recomputed.

        Returns:
            False iff some field has errors or a business rule reported a
            global error
        """
        if self.config.validate_on_submit:
            self._scheduler.cancel_all()
            values = self._store.values
            await asyncio.gather(*(
                self._run_field(name, values.get(name), self._scheduler.next_generation(name))
                for name in self._field_order
            ))

        if self.business_rules is not None:
            report = await self.business_rules.evaluate(self._store.values)
            self._store.set_global_messages(report.errors, report.warnings)

        aggregate = self._store.recompute_aggregate()
        logger.info("Form validated",
                    is_valid=aggregate.is_valid,
                    invalid_fields=[
                        name for name, current in aggregate.fields.items() if current.errors
                    ],
                    global_errors=len(aggregate.global_errors))
        return aggregate.is_valid

    async def wait_for_idle(self) -> None:
        """Wait until no debounced run is pending or in flight."""
        await self._scheduler.wait_idle()

    async def aclose(self) -> None:
        """Cancel pending and in-flight debounced runs."""
        await self._scheduler.shutdown()
        logger.debug("Form validation engine closed")

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _declare(self, field_name: str) -> None:
        if field_name not in self._field_order:
            self._field_order.append(field_name)

    async def _debounced_run(self, field_name: str, generation: int) -> None:
        published = await self._run_field(field_name, self._store.get_value(field_name), generation)
        if published is not None:
            await self._revalidate_dependents(field_name)

    async def _revalidate_dependents(self, field_name: str) -> None:
        # one level only; a dependent with its own pending timer reads the new value when it fires
        dependents = [
            name for name in self.dependents_of(field_name)
            if not self._scheduler.is_pending(name)
        ]
        if not dependents:
            return
        logger.debug("Re-validating dependent fields",
                     field_name=field_name,
                     dependents=dependents)
        await asyncio.gather(*(
            self._run_field(name, self._store.get_value(name), self._scheduler.next_generation(name))
            for name in dependents
        ))

    async def _run_field(
        self,
        field_name: str,
        value: Any,
        generation: int
    ) -> Optional[FieldValidationState]:
        if not self._scheduler.is_current(field_name, generation):
            self.metrics.record_superseded(field_name)
            return None

        self._store.update_field(
            field_name,
            value=value,
            is_validating=True,
            has_been_touched=True
        )

        try:
            with self.metrics.time_field(field_name):
                outcome = await evaluate_rules(
                    field_name,
                    self.rules_for(field_name),
                    value,
                    self._store.values,
                    timeout=self.config.async_rule_timeout,
                    metrics=self.metrics
                )
        except asyncio.CancelledError:
            if self._scheduler.is_current(field_name, generation):
                self._store.update_field(field_name, is_validating=False)
            raise

        if not self._scheduler.is_current(field_name, generation):
            logger.debug("Discarding superseded validation run",
                         field_name=field_name,
                         generation=generation)
            self.metrics.record_superseded(field_name)
            return None

        published = self._store.update_field(
            field_name,
            errors=outcome.errors,
            warnings=outcome.warnings,
            info=outcome.info,
            is_validating=False
        )
        self._validated.add(field_name)
        self.metrics.record_field_run(field_name, bool(outcome.errors))
        return published


__all__ = [
    'FieldStatus',
    'RuleOutcome',
    'evaluate_rules',
    'FormValidationEngine',
]
