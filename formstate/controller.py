"""FormController orchestrator for the formstate engine.

This module provides the FormController class that coordinates the field
registry, dependency graph, validation scheduler, submission state machine
and event emitter of a single form. It is the only public way to change a
form: widgets reach it through FieldBinding adapters, application code
calls it directly.

Usage:
    >>> from formstate.controller import FormController
    >>> form = FormController({"email": "", "password": ""}, form_id="signup")
    >>> form.register_required_field("email")
    >>> form.set("email", "ada@example.com")
    >>> form.field_state("email").dirty
    True
    >>> form.snapshot().is_valid
    True
"""

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass, is_dataclass
from datetime import datetime, timezone
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
    Union,
)

from formstate.binding import (
    FieldBinding,
    bool_value,
    decimal_from_float,
    float_from_decimal,
    text_value,
    unique_list,
)
from formstate.draft import Draft, DraftFormatError, DraftStore
from formstate.errors import DraftError, FieldError, SubmissionError
from formstate.events import EventEmitter, FormEvent
from formstate.fields import FieldLens, FieldRef, FieldSet, form_fields
from formstate.graph import DependencyGraph
from formstate.registry import (
    AsyncValidator,
    FieldRegistry,
    FocusHandler,
    FormValidator,
    SyncValidator,
)
from formstate.scheduler import ValidationScheduler
from formstate.state import FieldState, FormSnapshot, FormStateStore
from formstate.state_machine import SubmissionStateMachine
from formstate.types import (
    EventType,
    FormOptions,
    RevalidateMode,
    SubmissionStatus,
    SubmitState,
    ValidationMode,
)
from formstate.validation import normalize_result

logger = logging.getLogger(__name__)

SubmitHandler = Callable[[Any], Union[None, bool, Awaitable[Optional[bool]]]]


@dataclass(frozen=True)
class SubmissionOutcome:
    """Result of one submit_in() call.

    Attributes:
        status: What happened (succeeded, invalid, failed, busy)
        state: Submit state after the attempt
        submit_count: Failed-attempt counter after the attempt
        error: Aggregated failure, None unless status is invalid or failed
    """
    status: SubmissionStatus
    state: SubmitState
    submit_count: int
    error: Optional[SubmissionError] = None

    @property
    def ok(self) -> bool:
        return self.status == SubmissionStatus.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "status": self.status.value,
            "state": self.state.value,
            "submitCount": self.submit_count,
        }
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result


def _default_form_id(model: Any) -> str:
    if is_dataclass(model) and not isinstance(model, type):
        return type(model).__name__
    if isinstance(model, type):
        return model.__name__
    return "form"


class FormController:
    """Owner of one form's state and the only entry point for changing it.

    A controller is meant to be driven from a single thread. Async
    validators and async submit handlers run as tasks on the event loop the
    controller is used from.

    Attributes:
        form_id: Identifier of the form, also the draft storage key
        fields: The form's typed field identifiers
        options: Validation and submission behaviour
        events: Emitter for every field, validation, submit and draft event

    Examples:
        >>> form = FormController({"name": ""}, form_id="profile")
        >>> form.register_required_field("name")
        >>> form.validate_form()
        False
        >>> form.display_error("name") is None  # untouched and never submitted
        True
    """

    def __init__(
        self,
        initial: Any,
        fields: Optional[Union[FieldSet, Iterable[FieldLens]]] = None,
        options: Optional[FormOptions] = None,
        form_id: Optional[str] = None,
    ):
        """Initialize the FormController.

        Args:
            initial: Initial model value; dirty flags compare against it
            fields: Field identifiers; derived from ``initial`` when omitted
            options: Form options; defaults to FormOptions()
            form_id: Form identifier; defaults to the model's type name

        Raises:
            RegistrationError: If two fields share a key
            TypeError: If fields cannot be derived from ``initial``
        """
        if fields is None:
            fields = form_fields(initial)
        elif not isinstance(fields, FieldSet):
            fields = FieldSet(list(fields))
        self.fields: FieldSet = fields
        self.options = options or FormOptions()
        self.form_id = form_id or _default_form_id(initial)
        self.events = EventEmitter()
        self.registry = FieldRegistry(fields)
        self.graph = DependencyGraph()
        self._store = FormStateStore.create(self.form_id, initial, self.registry.keys())
        self._machine = SubmissionStateMachine(form_id=self.form_id, listener=self.events.emit)
        self._scheduler = ValidationScheduler(self.registry, self._store, self.options, self._emit)
        self._bound: Set[str] = set()

    def __repr__(self) -> str:
        return (
            f"FormController({self.form_id!r}, fields={len(self.fields)}, "
            f"state={self._machine.state.value!r})"
        )

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_required_field(self, field: FieldRef) -> None:
        self.registry.register_required_field(field)

    def unregister_required_field(self, field: FieldRef) -> None:
        self.registry.unregister_required_field(field)

    def register_field_description(self, field: FieldRef, text: str) -> None:
        self.registry.register_field_description(field, text)

    def clear_field_description(self, field: FieldRef) -> None:
        self.registry.clear_field_description(field)

    def register_field_validator(
        self, field: FieldRef, validator: SyncValidator, replace: bool = False
    ) -> None:
        self.registry.register_field_validator(field, validator, replace=replace)

    def register_async_field_validator(
        self, field: FieldRef, validator: AsyncValidator, replace: bool = False
    ) -> None:
        """Attach an async validator using the form's default debounce."""
        self.registry.register_async_field_validator(
            field, self.options.default_debounce_ms, validator, replace=replace
        )

    def register_async_field_validator_with_debounce(
        self,
        field: FieldRef,
        debounce_ms: int,
        validator: AsyncValidator,
        replace: bool = False,
    ) -> None:
        self.registry.register_async_field_validator(field, debounce_ms, validator, replace=replace)

    def register_form_validator(self, validator: FormValidator) -> None:
        self.registry.register_form_validator(validator)

    def register_focus_handler(self, field: FieldRef, handler: FocusHandler) -> None:
        self.registry.register_focus_handler(field, handler)

    def register_dependency(self, source: FieldRef, dependent: FieldRef) -> None:
        """Revalidate ``dependent`` whenever ``source`` changes.

        Raises:
            UnknownFieldError: If either field does not belong to this form
            RegistrationError: If the edge would close a cycle, or the form
                has already been submitted
        """
        source_key = self.registry.meta(source).key
        dependent_key = self.registry.meta(dependent).key
        self.registry.ensure_open(dependent_key)
        self.graph.add(source_key, dependent_key)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set(self, field: FieldRef, value: Any) -> None:
        """Write a field value and run the sync side of validation.

        The field is marked dirty when the new value differs from the
        initial one. Any async validation still outstanding for the field is
        superseded. ``touched`` is left alone.
        """
        key = self._write(field, value)
        if self.options.validate_mode == ValidationMode.ON_CHANGE:
            self._scheduler.validate_sync(key)
        if self.options.revalidate_mode == RevalidateMode.ON_CHANGE:
            self._revalidate_dependents(key, run_async=False)

    def set_async(self, field: FieldRef, value: Any) -> Optional[int]:
        """Write a field value and schedule its async validator.

        Returns immediately. If a sync check fails the async validator is not
        started and any older ticket is invalidated.

        Returns:
            The ticket of the scheduled validation, or None if none was started

        Raises:
            RuntimeError: If called outside a running event loop
        """
        self._require_loop(field)
        key = self._write(field, value)
        ticket = None
        if self.options.validate_mode == ValidationMode.ON_CHANGE:
            ticket = self._validate_then_schedule(key)
        if self.options.revalidate_mode == RevalidateMode.ON_CHANGE:
            self._revalidate_dependents(key, run_async=True)
        return ticket

    def touch(self, field: FieldRef) -> None:
        """Mark a field as touched (blur)."""
        key = self._mark_touched(field)
        if self.options.validate_mode == ValidationMode.ON_BLUR:
            self._scheduler.validate_sync(key)
        if self.options.revalidate_mode == RevalidateMode.ON_BLUR:
            self._revalidate_dependents(key, run_async=False)

    def touch_async(self, field: FieldRef) -> Optional[int]:
        """Mark a field as touched and re-run all of its validators.

        Sync checks always run, so an invalid default value surfaces on the
        first blur. The async validator starts without debounce. This holds
        for every ``validate_mode``, including ``ON_SUBMIT``: calling
        ``touch_async`` is an explicit request to validate the field. Use
        ``touch`` to mark a field touched under the configured mode.

        Raises:
            RuntimeError: If called outside a running event loop
        """
        self._require_loop(field)
        key = self._mark_touched(field)
        ticket = self._validate_then_schedule(key, debounce_ms=0)
        if self.options.revalidate_mode == RevalidateMode.ON_BLUR:
            self._revalidate_dependents(key, run_async=True)
        return ticket

    def _write(self, field: FieldRef, value: Any) -> str:
        meta = self.registry.meta(field)
        key = meta.key
        store = self._store
        store.model = meta.lens.set(store.model, value)
        state = store.field_state(key)
        state.dirty = meta.lens.get(store.model) != meta.lens.get(store.initial_model)
        self._scheduler.invalidate(key)
        self._scheduler.mark_stale(key)
        self._emit(EventType.FIELD_UPDATED, key, {"dirty": state.dirty})
        return key

    def _mark_touched(self, field: FieldRef) -> str:
        key = self.registry.meta(field).key
        self._store.field_state(key).touched = True
        self._emit(EventType.FIELD_TOUCHED, key, None)
        return key

    def _validate_then_schedule(self, key: str, debounce_ms: Optional[int] = None) -> Optional[int]:
        if self._scheduler.validate_sync(key) is not None:
            self._scheduler.invalidate(key)
            return None
        return self._scheduler.request(key, debounce_ms)

    def _revalidate_dependents(self, key: str, run_async: bool) -> None:
        for dependent in self.graph.dependents_of(key):
            # async verdicts of dependents were computed against the old source value
            self._scheduler.invalidate(dependent)
            self._scheduler.mark_stale(dependent)
            if run_async:
                self._validate_then_schedule(dependent)
            else:
                self._scheduler.validate_sync(dependent)

    def _require_loop(self, field: FieldRef) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            raise RuntimeError(
                f"async operation on '{self.registry.meta(field).key}' requires a running event loop"
            ) from None

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_field(self, field: FieldRef) -> bool:
        """Run a field's sync checks now; True when the field is valid."""
        key = self.registry.meta(field).key
        self._scheduler.validate_sync(key)
        return self._store.field_state(key).error is None

    async def validate_field_async(self, field: FieldRef) -> bool:
        """Run all of a field's validators now and wait for the verdict."""
        key = self.registry.meta(field).key
        if self._scheduler.validate_sync(key) is not None:
            self._scheduler.invalidate(key)
            return False
        await self._scheduler.run_now(key)
        return self._store.field_state(key).error is None

    def validate_form(self) -> bool:
        """Run every sync check and every form validator.

        Async verdicts already applied for the current values are kept.

        Returns:
            True if no field has an error
        """
        for key in self.registry.keys():
            self._scheduler.validate_sync(key)
        self._run_form_validators()
        return self.snapshot().is_valid

    async def validate_form_async(self) -> bool:
        """Run every validator of the form and wait for all async verdicts.

        An async verdict is reused only if it was computed against the
        current model. Fields with a validation in flight are waited for,
        then validated once more if the model changed while they ran.
        """
        scheduler = self._scheduler
        awaited = []
        for key in self.registry.keys():
            if scheduler.validate_sync(key) is not None:
                scheduler.invalidate(key)
                continue
            if not scheduler.has_async(key):
                continue
            awaited.append(key)
            if not self._store.field_state(key).pending and not scheduler.is_fresh(key):
                scheduler.request(key, debounce_ms=0)
        await scheduler.wait()

        for key in awaited:
            if not self._store.field_state(key).pending and not scheduler.is_fresh(key):
                scheduler.request(key, debounce_ms=0)
        await scheduler.wait()
        self._run_form_validators()
        return self.snapshot().is_valid

    async def wait_for_validation(self, include_superseded: bool = False) -> None:
        """Wait until no async validation is outstanding.

        Args:
            include_superseded: Also wait for validators whose result will be
                discarded
        """
        if include_superseded:
            await self._scheduler.drain()
        else:
            await self._scheduler.wait()

    def _run_form_validators(self) -> None:
        model = self._store.model
        first_key = next(iter(self.registry.keys()), None)
        for validator in self.registry.form_validators:
            try:
                errors = self._collect_form_errors(validator(model) or {})
            except Exception as exc:
                logger.warning("Form validator of '%s' failed", self.form_id, exc_info=True)
                if first_key is None:
                    continue
                errors = [(first_key, FieldError.validator_failed(first_key, exc))]
            for key, error in errors:
                state = self._store.field_state(key)
                if state.error is not None:
                    continue
                state.error = error
                self._emit(EventType.VALIDATION_FAILED, key, {"error": error.to_dict(), "form": True})

    def _collect_form_errors(self, results: Any) -> List[Tuple[str, FieldError]]:
        """Resolve a form validator's mapping into (key, error) pairs.

        Raises:
            TypeError: If the result is not a mapping
            UnknownFieldError: If it names a field outside the form
        """
        if not isinstance(results, Mapping):
            raise TypeError(
                f"form validator must return a mapping, got {type(results).__name__}"
            )
        errors = []
        for field, result in results.items():
            key = self.registry.meta(field).key
            error = normalize_result(key, result)
            if error is not None:
                errors.append((key, error))
        return errors

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def model(self) -> Any:
        return self._store.model

    @property
    def submit_state(self) -> SubmitState:
        return self._machine.state

    @property
    def submit_count(self) -> int:
        return self._machine.submit_count

    def get(self, field: FieldRef) -> Any:
        return self.registry.lens(field).get(self._store.model)

    def snapshot(self) -> FormSnapshot:
        return self._store.snapshot(self._machine.state, self._machine.submit_count)

    def field_state(self, field: FieldRef) -> FieldState:
        """Copy of a field's runtime state."""
        return self._store.field_state(self.registry.meta(field).key).copy()

    def display_error(self, field: FieldRef) -> Optional[FieldError]:
        """The field's error if the user may see it yet.

        Errors are stored as soon as they are found but shown only once the
        field is touched or the form has failed a submit attempt.
        """
        state = self._store.field_state(self.registry.meta(field).key)
        if not state.touched and self._machine.submit_count == 0:
            return None
        return state.error

    def field_description(self, field: FieldRef) -> Optional[str]:
        return self.registry.meta(field).description

    def is_required(self, field: FieldRef) -> bool:
        return self.registry.meta(field).required

    def is_bound(self, field: FieldRef) -> bool:
        return self.registry.meta(field).key in self._bound

    def first_error(self) -> Optional[str]:
        """Key of the first invalid field in declaration order."""
        return self.snapshot().first_error

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def reset_to_initial(self) -> None:
        """Restore the initial model and forget all interaction state.

        Outstanding async validations are superseded and the submit state
        returns to idle with a zero submit count.
        """
        self._scheduler.invalidate_all()
        self._store.model = self._store.initial_model
        for state in self._store.fields.values():
            state.reset()
        self._machine.transition_to(SubmitState.IDLE, {"reason": "reset"})
        logger.debug("Form '%s' reset to initial values", self.form_id)

    def reset_field(self, field: FieldRef) -> None:
        """Restore one field's initial value and clear its state."""
        meta = self.registry.meta(field)
        store = self._store
        self._scheduler.invalidate(meta.key)
        self._scheduler.mark_stale(meta.key)
        store.model = meta.lens.set(store.model, meta.lens.get(store.initial_model))
        store.field_state(meta.key).reset()
        self._emit(EventType.FIELD_RESET, meta.key, None)

    def clear_errors(self) -> None:
        """Drop every stored error and supersede outstanding validations."""
        for key in self.registry.keys():
            self._clear_field(key)

    def clear_field_errors(self, field: FieldRef) -> None:
        self._clear_field(self.registry.meta(field).key)

    def _clear_field(self, key: str) -> None:
        self._scheduler.invalidate(key)
        self._scheduler.mark_stale(key)
        state = self._store.field_state(key)
        state.error = None
        self._emit(EventType.VALIDATION_PASSED, key, {"cleared": True})

    def focus_first_error(self) -> bool:
        """Call the focus handler of the first invalid field.

        Returns:
            True if a handler was found and called
        """
        key = self.first_error()
        if key is None:
            return False
        handler = self.registry.meta(key).focus_handler
        if handler is None:
            logger.debug("No focus handler registered for '%s'", key)
            return False
        handler()
        return True

    def close(self) -> None:
        """Cancel outstanding async validations (form teardown)."""
        self._scheduler.close()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit_in(self, on_success: SubmitHandler) -> SubmissionOutcome:
        """Validate the whole form and, if valid, run ``on_success``.

        ``on_success`` receives the model and may be a plain function or a
        coroutine function. It reports failure by raising or by returning
        False.

        Args:
            on_success: Handler to run with the validated model

        Returns:
            The outcome of the attempt. A call made while another attempt
            is validating or submitting returns a busy outcome and changes
            nothing.
        """
        if self._machine.is_busy():
            logger.info("Submit of '%s' rejected: %s in progress", self.form_id, self._machine.state.value)
            self._emit(EventType.SUBMISSION_BUSY, None, {"state": self._machine.state.value})
            return self._outcome(SubmissionStatus.BUSY)

        self.registry.freeze()
        self._machine.transition_to(SubmitState.VALIDATING)
        try:
            valid = await self.validate_form_async()
        except BaseException:
            self._fail_if(SubmitState.VALIDATING, {"reason": "validation_error"})
            raise
        if self._machine.state != SubmitState.VALIDATING:
            return self._abandoned()

        if not valid:
            error = SubmissionError(self.snapshot().errors())
            self._machine.transition_to(SubmitState.FAILED, {"fields": list(error.field_errors)})
            self._touch_after_failure()
            logger.info("Submit of '%s' invalid: %s", self.form_id, ", ".join(error.field_errors))
            if self.options.focus_first_error_on_submit:
                self.focus_first_error()
            return self._outcome(SubmissionStatus.INVALID, error)

        self._machine.transition_to(SubmitState.SUBMITTING)
        try:
            result = on_success(self._store.model)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            logger.warning("Submit handler of '%s' raised", self.form_id, exc_info=True)
            error = SubmissionError(cause=exc)
            self._fail_if(SubmitState.SUBMITTING, {"cause": repr(exc)})
            return self._outcome(SubmissionStatus.FAILED, error)
        except BaseException:
            self._fail_if(SubmitState.SUBMITTING, {"reason": "cancelled"})
            raise
        if self._machine.state != SubmitState.SUBMITTING:
            return self._abandoned()

        if result is False:
            self._machine.transition_to(SubmitState.FAILED, {"reason": "rejected"})
            logger.info("Submit handler of '%s' reported failure", self.form_id)
            return self._outcome(SubmissionStatus.FAILED, SubmissionError())

        self._machine.transition_to(SubmitState.SUCCEEDED)
        logger.info("Form '%s' submitted", self.form_id)
        return self._outcome(SubmissionStatus.SUCCEEDED)

    def _fail_if(self, expected: SubmitState, payload: Dict[str, Any]) -> None:
        # a reset during the attempt has already moved the machine to idle
        if self._machine.state == expected:
            self._machine.transition_to(SubmitState.FAILED, payload)

    def _abandoned(self) -> SubmissionOutcome:
        logger.info("Submit of '%s' abandoned: form was reset during the attempt", self.form_id)
        return self._outcome(SubmissionStatus.FAILED)

    def _touch_after_failure(self) -> None:
        touch_all = self.options.touch_unbound_fields_on_submit_failure
        for key in self.registry.keys():
            if not touch_all and key not in self._bound:
                continue
            self._store.field_state(key).touched = True
            self._emit(EventType.FIELD_TOUCHED, key, {"reason": "submit"})

    def _outcome(
        self, status: SubmissionStatus, error: Optional[SubmissionError] = None
    ) -> SubmissionOutcome:
        return SubmissionOutcome(
            status=status,
            state=self._machine.state,
            submit_count=self._machine.submit_count,
            error=error,
        )

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------

    def save_draft(self, store: DraftStore, include_flags: bool = False) -> Draft:
        """Serialize the current values into ``store`` under the form id.

        Args:
            store: Persistence backend
            include_flags: Also save each field's dirty and touched flags

        Raises:
            DraftError: If a value is not JSON serializable or the store fails
        """
        model = self._store.model
        values = {meta.key: meta.lens.get(model) for meta in self.registry}
        flags = None
        if include_flags:
            flags = {
                key: {"dirty": state.dirty, "touched": state.touched}
                for key, state in self._store.fields.items()
            }
        draft = Draft(form_id=self.form_id, values=values, flags=flags)
        try:
            store.save(self.form_id, draft.encode())
        except Exception as exc:
            raise DraftError("save", str(exc)) from exc
        logger.info("Saved draft of '%s' (%d fields)", self.form_id, len(values))
        self._emit(EventType.DRAFT_SAVED, None, {"fields": len(values)})
        return draft

    def load_draft(self, store: DraftStore, restore_touched: bool = False) -> bool:
        """Replace the current values with the draft stored for this form.

        Loading is all-or-nothing: the draft is decoded and applied to a copy
        of the model first, and the form is only changed once that succeeded.
        A loaded draft resets the submit state, errors and outstanding
        validations. Fields are marked dirty against the initial model;
        touched flags are kept unless ``restore_touched`` is set and the draft
        carries flags.

        Returns:
            True if a draft was loaded, False if the store had none

        Raises:
            DraftError: If the store fails, the payload is malformed or
                belongs to another form, or a submit attempt is in progress
        """
        if self._machine.is_busy():
            raise DraftError("load", f"form '{self.form_id}' is {self._machine.state.value}")
        try:
            payload = store.load(self.form_id)
        except Exception as exc:
            raise DraftError("load", str(exc)) from exc
        if payload is None:
            return False
        try:
            draft = Draft.decode(payload)
        except DraftFormatError as exc:
            raise DraftError("load", str(exc)) from exc
        if draft.form_id != self.form_id:
            raise DraftError("load", f"draft belongs to form '{draft.form_id}'")
        unknown = [key for key in draft.values if key not in self.registry]
        if unknown:
            raise DraftError("load", f"unknown fields: {', '.join(sorted(unknown))}")

        model = self._store.model
        try:
            for key, value in draft.values.items():
                model = self.registry.lens(key).set(model, value)
        except (TypeError, ValueError, AttributeError, KeyError) as exc:
            raise DraftError("load", f"cannot apply draft values: {exc}") from exc

        self._scheduler.invalidate_all()
        self._store.model = model
        flags = draft.flags or {}
        for meta in self.registry:
            state = self._store.field_state(meta.key)
            state.dirty = meta.lens.get(model) != meta.lens.get(self._store.initial_model)
            state.error = None
            state.async_error = None
            if restore_touched and meta.key in flags:
                state.touched = flags[meta.key].get("touched", state.touched)
        self._machine.transition_to(SubmitState.IDLE, {"reason": "draft_loaded"})
        logger.info("Loaded draft of '%s' saved at %s", self.form_id, draft.saved_at.isoformat())
        self._emit(EventType.DRAFT_LOADED, None, {"savedAt": draft.saved_at.isoformat()})
        return True

    def clear_draft(self, store: DraftStore) -> None:
        """Remove this form's draft from ``store``.

        Raises:
            DraftError: If the store fails
        """
        try:
            store.clear(self.form_id)
        except Exception as exc:
            raise DraftError("clear", str(exc)) from exc
        logger.info("Cleared draft of '%s'", self.form_id)
        self._emit(EventType.DRAFT_CLEARED, None, None)

    # ------------------------------------------------------------------
    # Bindings
    # ------------------------------------------------------------------

    def bind(
        self,
        field: FieldRef,
        kind: str = "generic",
        parse: Optional[Callable[[Any], Any]] = None,
        render: Optional[Callable[[Any], Any]] = None,
        live: bool = False,
    ) -> FieldBinding:
        """Build a widget binding for a field and mark the field as bound."""
        lens = self.registry.lens(field)
        self._bound.add(lens.key)
        return FieldBinding(self, lens, kind=kind, parse=parse, render=render, live=live)

    def bind_text_input(self, field: FieldRef, live: bool = False) -> FieldBinding:
        return self.bind(field, "text_input", text_value, text_value, live)

    def bind_password_input(self, field: FieldRef, live: bool = False) -> FieldBinding:
        return self.bind(field, "password_input", text_value, text_value, live)

    def bind_textarea(self, field: FieldRef, live: bool = False) -> FieldBinding:
        return self.bind(field, "textarea", text_value, text_value, live)

    def bind_number_input(self, field: FieldRef, live: bool = False) -> FieldBinding:
        """Bind a Decimal field to a float-valued number widget.

        Non-finite widget readings are ignored.
        """
        return self.bind(field, "number_input", decimal_from_float, float_from_decimal, live)

    def bind_checkbox(self, field: FieldRef, live: bool = False) -> FieldBinding:
        return self.bind(field, "checkbox", bool_value, bool_value, live)

    def bind_switch(self, field: FieldRef, live: bool = False) -> FieldBinding:
        return self.bind(field, "switch", bool_value, bool_value, live)

    def bind_select(self, field: FieldRef, live: bool = False) -> FieldBinding:
        return self.bind(field, "select", text_value, text_value, live)

    def bind_multiselect(self, field: FieldRef, live: bool = False) -> FieldBinding:
        return self.bind(field, "multiselect", unique_list, unique_list, live)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _emit(self, event_type: EventType, field: Optional[str], payload: Optional[Dict[str, Any]]) -> None:
        event = FormEvent(
            event_id=f"evt_{uuid.uuid4().hex[:16]}",
            type=event_type,
            form_id=self.form_id,
            ts=datetime.now(timezone.utc),
            field=field,
            payload=payload,
        )
        self.events.emit(event)


__all__ = [
    "SubmitHandler",
    "SubmissionOutcome",
    "FormController",
]
