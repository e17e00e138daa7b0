"""
Form Submission Service

Coordinates a ``FormValidationEngine`` with a draft store and a submit
handler, the way a form container drives the engine:

- restore a saved draft when the form opens, without triggering validation
- auto-save the values after a quiet period (2000 ms by default)
- on submit, validate the whole form; if invalid, focus the first invalid
  field in declared order; otherwise call the submit handler and clear the
  draft
- on cancel, discard the draft

Draft storage problems never block editing or submitting: they are logged
and the form carries on.
"""

import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import Field

from .drafts import DraftStore
from .engine import FormValidationEngine
from .exceptions import DraftStoreError, SubmissionError
from .models import WireModel
from .scheduler import DebounceScheduler

import structlog
logger = structlog.get_logger("business.services")


SubmitHandler = Callable[[Dict[str, Any]], Union[Any, Awaitable[Any]]]

AUTOSAVE_KEY = 'draft'


class SubmissionResult(WireModel):
    """Outcome of ``FormSubmissionService.submit``."""

    submitted: bool
    is_valid: bool
    first_invalid_field: Optional[str] = None
    field_errors: Dict[str, List[str]] = Field(default_factory=dict)
    global_errors: List[str] = Field(default_factory=list)
    response: Any = None


class FormSubmissionService:
    """
    Draft and submit flow around one engine.

    Args:
        engine: Engine of the form
        submit_handler: Called with the form values once the form is valid;
            may be a coroutine function
        draft_store: Optional draft persistence; drafts are disabled without it
        draft_key: Key of this form's draft; drafts are disabled without it
        autosave_delay_ms: Quiet period before saving; defaults to the
            engine's ``autosave_delay_ms``
        on_focus: Called with the field to focus after a failed submit
    """

    def __init__(
        self,
        engine: FormValidationEngine,
        submit_handler: Optional[SubmitHandler] = None,
        draft_store: Optional[DraftStore] = None,
        draft_key: Optional[str] = None,
        autosave_delay_ms: Optional[float] = None,
        on_focus: Optional[Callable[[str], None]] = None
    ):
        self.engine = engine
        self.submit_handler = submit_handler
        self.draft_store = draft_store
        self.draft_key = draft_key
        self.on_focus = on_focus

        delay = engine.config.autosave_delay_ms if autosave_delay_ms is None else autosave_delay_ms
        self._autosave = DebounceScheduler(delay_ms=delay)

        self.has_been_modified = False
        self.submit_attempted = False
        self.is_submitting = False

    @property
    def drafts_enabled(self) -> bool:
        return self.draft_store is not None and bool(self.draft_key)

    # ------------------------------------------------------------------
    # drafts
    # ------------------------------------------------------------------

    def restore_draft(self) -> bool:
        """
        Load the saved draft into the engine without validating it.

        Returns:
            True if a draft was restored
        """
        if not self.drafts_enabled:
            return False
        try:
            draft = self.draft_store.load(self.draft_key)
        except DraftStoreError:
            logger.warning("Failed to load draft", draft_key=self.draft_key)
            return False
        if not draft:
            return False

        for field_name, value in draft.items():
            self.engine.set_field_value(field_name, value, validate=False)
        self.has_been_modified = True
        logger.info("Draft restored", draft_key=self.draft_key, fields=len(draft))
        return True

    def save_draft(self) -> bool:
        """Save the current values now. Returns False if saving failed or is disabled."""
        if not self.drafts_enabled:
            return False
        try:
            self.draft_store.save(self.draft_key, self.engine.values)
        except DraftStoreError:
            logger.warning("Auto-save failed", draft_key=self.draft_key)
            return False
        logger.debug("Form auto-saved", draft_key=self.draft_key)
        return True

    def clear_draft(self) -> None:
        self._autosave.cancel(AUTOSAVE_KEY)
        if not self.drafts_enabled:
            return
        try:
            self.draft_store.clear(self.draft_key)
        except DraftStoreError:
            logger.warning("Failed to clear draft", draft_key=self.draft_key)

    async def _autosave_run(self, generation: int) -> None:
        self.save_draft()

    # ------------------------------------------------------------------
    # editing
    # ------------------------------------------------------------------

    def set_field_value(self, field_name: str, value: Any, validate: bool = True) -> None:
        """Forward a user edit to the engine and schedule the draft auto-save."""
        self.engine.set_field_value(field_name, value, validate=validate)
        self.has_been_modified = True
        if self.drafts_enabled:
            self._autosave.schedule(AUTOSAVE_KEY, self._autosave_run)

    # ------------------------------------------------------------------
    # submit / cancel
    # ------------------------------------------------------------------

    async def submit(self) -> SubmissionResult:
        """
        Validate the form and hand valid values to the submit handler.

        Raises:
            SubmissionError: If the submit handler raises; the draft is kept
        """
        self.submit_attempted = True

        if not await self.engine.validate_form():
            state = self.engine.state
            first_invalid = self.engine.first_invalid_field()
            if first_invalid is not None:
                self.engine.focus_field(first_invalid)
                if self.on_focus is not None:
                    self.on_focus(first_invalid)
            logger.info("Form submission blocked by validation",
                        first_invalid_field=first_invalid)
            return SubmissionResult(
                submitted=False,
                is_valid=False,
                first_invalid_field=first_invalid,
                field_errors={
                    name: list(current.errors)
                    for name, current in state.fields.items() if current.errors
                },
                global_errors=state.global_errors,
            )

        response = None
        if self.submit_handler is not None:
            self.is_submitting = True
            try:
                response = self.submit_handler(self.engine.values)
                if inspect.isawaitable(response):
                    response = await response
            except Exception as e:
                logger.error("Form submission failed",
                             error_type=type(e).__name__,
                             exc_info=True)
                raise SubmissionError(cause=e) from e
            finally:
                self.is_submitting = False

        self.clear_draft()
        self.has_been_modified = False
        logger.info("Form submitted", draft_key=self.draft_key)
        return SubmissionResult(submitted=True, is_valid=True, response=response)

    def cancel(self, confirm_discard: Optional[Callable[[], bool]] = None) -> bool:
        """
        Discard the draft.

        Args:
            confirm_discard: Asked before discarding modified values; a false
                answer keeps everything as it is

        Returns:
            True if the form was cancelled
        """
        if self.has_been_modified and confirm_discard is not None and not confirm_discard():
            return False
        self.clear_draft()
        self.has_been_modified = False
        return True

    async def wait_for_autosave(self) -> None:
        await self._autosave.wait_idle()

    async def aclose(self) -> None:
        await self._autosave.shutdown()


__all__ = [
    'SubmissionResult',
    'FormSubmissionService',
]
