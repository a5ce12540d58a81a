"""Validation scheduler: inline sync validation and debounced async validation.

Async validators run as asyncio tasks on the form's event loop. Every
request mints a new per-field ticket; a result is applied only if its
ticket is still the field's latest when it arrives. Superseded validators
are never interrupted mid-flight: they run to completion and their result
is dropped ("logical cancellation"). Only the debounce wait itself is
cancelled, so a burst of edits leads to a single validator call with the
last value.

Usage:
    >>> # inside a coroutine running on the form's loop
    >>> ticket = scheduler.request("email")          # doctest: +SKIP
    >>> await scheduler.wait()                        # doctest: +SKIP
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from formstate.errors import FieldError
from formstate.registry import AsyncValidator, FieldRegistry
from formstate.state import FormStateStore
from formstate.types import EventType, FormOptions
from formstate.validation import normalize_result, run_sync_validators

logger = logging.getLogger(__name__)

EmitFn = Callable[[EventType, Optional[str], Optional[Dict[str, Any]]], None]


class ValidationScheduler:
    """Runs field validators and arbitrates async results by ticket.

    Attributes:
        registry: Field metadata and validators
        store: The form's mutable state record
        options: Form options (required enforcement, default debounce)
    """

    def __init__(
        self,
        registry: FieldRegistry,
        store: FormStateStore,
        options: FormOptions,
        emit: EmitFn,
    ):
        self.registry = registry
        self.store = store
        self.options = options
        self._emit = emit
        # tasks still inside their debounce wait, by field
        self._timers: Dict[str, asyncio.Task] = {}
        # task carrying the field's current ticket
        self._current: Dict[str, asyncio.Task] = {}
        self._tasks: Set[asyncio.Task] = set()
        # fields whose stored async verdict belongs to the current value
        self._checked: Set[str] = set()
        # model each stored async verdict was computed against
        self._verdict_models: Dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Sync path
    # ------------------------------------------------------------------

    def validate_sync(self, key: str) -> Optional[FieldError]:
        """Run a field's sync checks now and store the combined error.

        The stored error is the sync error if there is one, otherwise the
        async verdict for the current value (if any has been applied).

        Returns:
            The sync error, or None when all sync checks passed
        """
        meta = self.registry.meta(key)
        state = self.store.field_state(key)
        model = self.store.model
        sync_error = run_sync_validators(
            meta, model, meta.lens.get(model), self.options.enforce_required
        )
        async_error = state.async_error if key in self._checked else None
        state.error = sync_error or async_error
        self._emit_verdict(key, state.error, None)
        return sync_error

    # ------------------------------------------------------------------
    # Async path
    # ------------------------------------------------------------------

    def has_async(self, key: str) -> bool:
        return self.registry.meta(key).async_validator is not None

    def request(self, key: str, debounce_ms: Optional[int] = None) -> Optional[int]:
        """Schedule the async validator of a field and return its ticket.

        Any debounce wait already running for the field is cancelled and
        restarted; the validator sees the model as it is when the wait ends.

        Args:
            key: Field to validate
            debounce_ms: Override the field's registered debounce window

        Returns:
            The new ticket, or None if the field has no async validator

        Raises:
            RuntimeError: If called outside a running event loop
        """
        meta = self.registry.meta(key)
        validator = meta.async_validator
        if validator is None:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            raise RuntimeError(
                f"async validation of '{key}' requires a running event loop"
            ) from None

        state = self.store.field_state(key)
        previous = state.ticket
        ticket = self.store.next_ticket(key)
        state.pending = True
        self._cancel_timer(key, previous)

        delay = meta.debounce_ms if debounce_ms is None else debounce_ms
        task = loop.create_task(self._run(key, ticket, delay, validator))
        self._timers[key] = task
        self._current[key] = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.debug("Issued ticket %d for '%s' (debounce %d ms)", ticket, key, delay)
        self._emit(EventType.VALIDATION_STARTED, key, {"ticket": ticket, "debounceMs": delay})
        return ticket

    async def run_now(self, key: str) -> Optional[int]:
        """Validate a field immediately (no debounce) and wait for the verdict."""
        ticket = self.request(key, debounce_ms=0)
        if ticket is not None:
            await self.wait([key])
        return ticket

    async def _run(self, key: str, ticket: int, delay_ms: int, validator: AsyncValidator) -> None:
        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000)
        if self._timers.get(key) is asyncio.current_task():
            del self._timers[key]

        if not self.store.is_current(key, ticket):
            self._discard(key, ticket)
            return

        model = self.store.model
        value = self.registry.meta(key).lens.get(model)
        try:
            verdict = normalize_result(key, await validator(model, value))
        except Exception as exc:
            logger.warning("Async validator for '%s' raised (ticket %d)", key, ticket, exc_info=True)
            verdict = FieldError.validator_failed(key, exc)
        self.apply(key, ticket, verdict, model)

    def apply(
        self,
        key: str,
        ticket: int,
        verdict: Optional[FieldError],
        seen_model: Any = None,
    ) -> bool:
        """Apply an async verdict if ``ticket`` is still the field's latest.

        Sync checks are re-run against the current model so that an error
        set meanwhile by a dependency cascade is not overwritten.

        Args:
            key: Field the verdict belongs to
            ticket: Ticket the validator ran under
            verdict: The normalized async result
            seen_model: Model the validator was given (defaults to the
                current one)

        Returns:
            True if applied, False if the verdict was stale and dropped
        """
        if not self.store.is_current(key, ticket):
            self._discard(key, ticket)
            return False

        meta = self.registry.meta(key)
        state = self.store.field_state(key)
        model = self.store.model
        state.pending = False
        state.async_error = verdict
        self._checked.add(key)
        self._verdict_models[key] = model if seen_model is None else seen_model
        sync_error = run_sync_validators(
            meta, model, meta.lens.get(model), self.options.enforce_required
        )
        state.error = sync_error or verdict
        logger.debug("Applied ticket %d for '%s' (valid=%s)", ticket, key, state.error is None)
        self._emit_verdict(key, state.error, ticket)
        return True

    def _discard(self, key: str, ticket: int) -> None:
        logger.debug(
            "Discarded stale ticket %d for '%s' (current %d)",
            ticket,
            key,
            self.store.field_state(key).ticket,
        )
        self._emit(EventType.VALIDATION_DISCARDED, key, {"ticket": ticket, "reason": "stale"})

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def mark_stale(self, key: str) -> None:
        """Forget the async verdict of a field whose value just changed."""
        self._checked.discard(key)
        self._verdict_models.pop(key, None)
        self.store.field_state(key).async_error = None

    def is_checked(self, key: str) -> bool:
        return key in self._checked

    def is_fresh(self, key: str) -> bool:
        """True if the field's async verdict was computed against the current model.

        Async validators see the whole model, so a write to any field makes
        every earlier verdict stale for submission purposes, even though it
        stays displayed until the field itself changes.
        """
        return key in self._checked and self._verdict_models.get(key) is self.store.model

    def invalidate(self, key: str) -> None:
        """Supersede any outstanding async validation of a field."""
        state = self.store.field_state(key)
        previous = state.ticket
        if state.pending or key in self._current:
            self.store.next_ticket(key)
        state.pending = False
        self._cancel_timer(key, previous)
        self._current.pop(key, None)

    def invalidate_all(self) -> None:
        for key in self.registry.keys():
            self.invalidate(key)
        self._checked.clear()
        self._verdict_models.clear()

    def _cancel_timer(self, key: str, ticket: int) -> bool:
        """Cancel a debounce wait; the validator behind it never runs."""
        task = self._timers.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug("Debounced ticket %d for '%s'", ticket, key)
        self._emit(EventType.VALIDATION_DISCARDED, key, {"ticket": ticket, "reason": "debounced"})
        return True

    def pending_tasks(self, keys: Optional[Iterable[str]] = None) -> List[asyncio.Task]:
        wanted = self.registry.keys() if keys is None else list(keys)
        return [
            self._current[key]
            for key in wanted
            if key in self._current and not self._current[key].done()
        ]

    async def wait(self, keys: Optional[Iterable[str]] = None) -> None:
        """Wait until no current-ticket validation is outstanding.

        Superseded validators that are still running are not waited for.
        """
        wanted = None if keys is None else list(keys)
        while True:
            tasks = self.pending_tasks(wanted)
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def drain(self) -> None:
        """Wait for every validator task, including superseded ones."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Cancel all outstanding validator tasks (form teardown)."""
        for task in list(self._tasks):
            task.cancel()
        self._timers.clear()
        self._current.clear()
        for key in self.store.pending_keys():
            self.store.field_state(key).pending = False

    def _emit_verdict(self, key: str, error: Optional[FieldError], ticket: Optional[int]) -> None:
        payload: Dict[str, Any] = {}
        if ticket is not None:
            payload["ticket"] = ticket
        if error is None:
            self._emit(EventType.VALIDATION_PASSED, key, payload or None)
        else:
            payload["error"] = error.to_dict()
            self._emit(EventType.VALIDATION_FAILED, key, payload)


__all__ = ["ValidationScheduler"]
