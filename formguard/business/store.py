"""
Form State Store

Single owner of a form's current values and of its published field and form
state. UI edits, dependency-triggered re-validation and bulk draft restore all
mutate the form through the same methods here.

Reads hand out copies so callers can never mutate published state.
"""

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .models import FieldValidationState, FormValidationState

import structlog
logger = structlog.get_logger("business.store")


StateListener = Callable[[str, FieldValidationState], None]


class FormStateStore:
    """Current values plus per-field and aggregate validation state."""

    def __init__(self, initial_values: Optional[Mapping[str, Any]] = None):
        self._values: Dict[str, Any] = dict(initial_values or {})
        self._state = FormValidationState(
            fields={
                name: FieldValidationState(value=value)
                for name, value in self._values.items()
            }
        )
        self._listeners: List[StateListener] = []

    # ------------------------------------------------------------------
    # values
    # ------------------------------------------------------------------

    @property
    def values(self) -> Dict[str, Any]:
        return dict(self._values)

    def get_value(self, field_name: str, default: Any = None) -> Any:
        return self._values.get(field_name, default)

    def set_value(self, field_name: str, value: Any) -> FieldValidationState:
        """Store a new value and mark the field as touched."""
        self._values[field_name] = value
        return self.update_field(field_name, value=value, has_been_touched=True)

    # ------------------------------------------------------------------
    # field state
    # ------------------------------------------------------------------

    def has_field(self, field_name: str) -> bool:
        return field_name in self._state.fields

    @property
    def field_names(self) -> List[str]:
        return list(self._state.fields)

    def ensure_field(self, field_name: str) -> None:
        if field_name not in self._state.fields:
            self._state.fields[field_name] = FieldValidationState(
                value=self._values.get(field_name)
            )

    def get_field(self, field_name: str) -> Optional[FieldValidationState]:
        current = self._state.fields.get(field_name)
        return current.model_copy(deep=True) if current is not None else None

    def update_field(self, field_name: str, **changes: Any) -> FieldValidationState:
        """
        Publish a new state for ``field_name`` with ``changes`` applied.

        Unknown fields are created from their current value first.
        """
        self.ensure_field(field_name)
        updated = self._state.fields[field_name].model_copy(update=changes, deep=True)
        self._state.fields[field_name] = updated
        self._state.is_validating = any(
            state.is_validating for state in self._state.fields.values()
        )
        self._notify(field_name, updated)
        return updated

    # ------------------------------------------------------------------
    # aggregate state
    # ------------------------------------------------------------------

    def set_global_messages(self, errors: Iterable[str], warnings: Iterable[str]) -> None:
        self._state.global_errors = list(errors)
        self._state.global_warnings = list(warnings)

    def recompute_aggregate(self) -> FormValidationState:
        """
        Recompute form validity from the published field states.

        ``has_errors`` is the OR over field error lists; ``is_valid`` also
        requires the absence of global errors.
        """
        fields = self._state.fields.values()
        has_field_errors = any(state.errors for state in fields)
        self._state.has_errors = has_field_errors
        self._state.has_warnings = (
            any(state.warnings for state in fields) or bool(self._state.global_warnings)
        )
        self._state.is_valid = not has_field_errors and not self._state.global_errors
        self._state.is_validating = any(state.is_validating for state in fields)
        return self.snapshot()

    def snapshot(self) -> FormValidationState:
        return self._state.model_copy(deep=True)

    # ------------------------------------------------------------------
    # listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register ``listener(field_name, state)`` for every published field state.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, field_name: str, state: FieldValidationState) -> None:
        for listener in list(self._listeners):
            try:
                listener(field_name, state.model_copy(deep=True))
            except Exception as e:
                logger.error("Field state listener failed",
                             field_name=field_name,
                             error_type=type(e).__name__,
                             exc_info=True)
