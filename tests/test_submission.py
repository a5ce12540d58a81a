"""Tests for the submit lifecycle of a form controller.

Tests cover:
- Invalid submissions: failed state, submit_count, touch-all, focus
- Busy rejection while validating or submitting
- Success callbacks (sync and async) and callback failures
- Waiting for in-flight async validation before deciding validity
- Registry freezing and reset during an attempt
"""

import asyncio

import pytest

from formstate.controller import FormController, SubmissionOutcome
from formstate.errors import RegistrationError
from formstate.types import (
    EventType,
    FieldErrorCode,
    FormOptions,
    SubmissionStatus,
    SubmitState,
)


def signup_form(**options):
    form = FormController(
        {"email": "", "password": "", "newsletter": False},
        form_id="signup",
        options=FormOptions(**options),
    )
    form.register_required_field("email")
    form.register_required_field("password")
    return form


async def wait_for_state(form, state):
    while form.submit_state != state:
        await asyncio.sleep(0)


class TestInvalidSubmission:
    """Test submitting a form that fails validation."""

    @pytest.mark.asyncio
    async def test_invalid_submit(self):
        form = signup_form()
        submitted = []
        outcome = await form.submit_in(submitted.append)

        assert outcome.status == SubmissionStatus.INVALID
        assert outcome.state == SubmitState.FAILED
        assert outcome.submit_count == 1
        assert not outcome.ok
        assert set(outcome.error.field_errors) == {"email", "password"}
        assert submitted == []

    @pytest.mark.asyncio
    async def test_all_fields_touched_and_errors_displayed(self):
        """After a failed submit every error becomes visible."""
        form = signup_form()
        assert form.validate_form() is False
        assert form.display_error("email") is None

        await form.submit_in(lambda model: None)
        for key in ("email", "password", "newsletter"):
            assert form.field_state(key).touched is True
        assert form.display_error("email").code == FieldErrorCode.REQUIRED

    @pytest.mark.asyncio
    async def test_only_bound_fields_touched(self):
        """With the option off, headless fields stay untouched."""
        form = signup_form(touch_unbound_fields_on_submit_failure=False)
        form.bind_text_input("email")
        await form.submit_in(lambda model: None)
        assert form.field_state("email").touched is True
        assert form.field_state("password").touched is False
        # errors are still displayed because the form has failed a submit
        assert form.display_error("password") is not None

    @pytest.mark.asyncio
    async def test_count_increments_per_failure(self):
        form = signup_form()
        await form.submit_in(lambda model: None)
        outcome = await form.submit_in(lambda model: None)
        assert outcome.submit_count == 2

    @pytest.mark.asyncio
    async def test_focus_first_error(self):
        """The focus handler of the first invalid field in declaration order runs."""
        form = signup_form()
        focused = []
        form.register_focus_handler("password", lambda: focused.append("password"))
        form.register_focus_handler("email", lambda: focused.append("email"))
        await form.submit_in(lambda model: None)
        assert focused == ["email"]

    @pytest.mark.asyncio
    async def test_focus_disabled(self):
        form = signup_form(focus_first_error_on_submit=False)
        focused = []
        form.register_focus_handler("email", lambda: focused.append("email"))
        await form.submit_in(lambda model: None)
        assert focused == []

    @pytest.mark.asyncio
    async def test_form_validator_blocks_submit(self):
        form = signup_form()
        form.register_form_validator(
            lambda model: {"password": "too weak"} if model["password"] == "1234" else {}
        )
        form.set("email", "ada@example.com")
        form.set("password", "1234")
        outcome = await form.submit_in(lambda model: None)
        assert outcome.status == SubmissionStatus.INVALID
        assert outcome.error.field_errors["password"].message == "too weak"

    @pytest.mark.asyncio
    async def test_malformed_form_validator_fails_submit(self):
        """A form validator returning a non-mapping fails the attempt, not the caller."""
        form = signup_form()
        form.register_form_validator(lambda model: [("email", "bad")])
        form.set("email", "ada@example.com")
        form.set("password", "s3cret")
        outcome = await form.submit_in(lambda model: None)
        assert outcome.status == SubmissionStatus.INVALID
        assert outcome.state == SubmitState.FAILED
        error = outcome.error.field_errors["email"]
        assert error.code == FieldErrorCode.VALIDATOR_FAILED


class TestSuccessfulSubmission:
    """Test submitting a valid form."""

    @pytest.mark.asyncio
    async def test_sync_handler(self):
        form = signup_form()
        form.set("email", "ada@example.com")
        form.set("password", "s3cret")
        submitted = []
        outcome = await form.submit_in(submitted.append)

        assert outcome.ok
        assert outcome.state == SubmitState.SUCCEEDED
        assert outcome.submit_count == 0
        assert submitted == [{"email": "ada@example.com", "password": "s3cret", "newsletter": False}]

    @pytest.mark.asyncio
    async def test_async_handler(self):
        form = signup_form()
        form.set("email", "ada@example.com")
        form.set("password", "s3cret")

        async def save(model):
            await asyncio.sleep(0)
            return True

        outcome = await form.submit_in(save)
        assert outcome.status == SubmissionStatus.SUCCEEDED

    @pytest.mark.asyncio
    async def test_resubmit_after_success(self):
        form = signup_form()
        form.set("email", "ada@example.com")
        form.set("password", "s3cret")
        await form.submit_in(lambda model: None)
        outcome = await form.submit_in(lambda model: None)
        assert outcome.ok

    @pytest.mark.asyncio
    async def test_events_in_order(self):
        form = signup_form()
        form.set("email", "ada@example.com")
        form.set("password", "s3cret")
        seen = []
        form.events.on_any(lambda event: seen.append(event.type))
        await form.submit_in(lambda model: None)
        submit_events = [t for t in seen if t.value.startswith("submission.")]
        assert submit_events == [
            EventType.SUBMISSION_VALIDATING,
            EventType.SUBMISSION_SUBMITTING,
            EventType.SUBMISSION_SUCCEEDED,
        ]


class TestHandlerFailure:
    """Test success callbacks that fail."""

    @pytest.mark.asyncio
    async def test_handler_raises(self):
        form = signup_form()
        form.set("email", "ada@example.com")
        form.set("password", "s3cret")

        async def save(model):
            raise ConnectionError("backend down")

        outcome = await form.submit_in(save)
        assert outcome.status == SubmissionStatus.FAILED
        assert outcome.state == SubmitState.FAILED
        assert outcome.submit_count == 1
        assert isinstance(outcome.error.cause, ConnectionError)
        assert outcome.to_dict()["error"]["cause"] == "ConnectionError('backend down')"

    @pytest.mark.asyncio
    async def test_handler_returns_false(self):
        form = signup_form()
        form.set("email", "ada@example.com")
        form.set("password", "s3cret")
        outcome = await form.submit_in(lambda model: False)
        assert outcome.status == SubmissionStatus.FAILED
        assert outcome.error.cause is None


class TestBusy:
    """Test rejection of concurrent submit attempts."""

    @pytest.mark.asyncio
    async def test_busy_while_submitting(self):
        form = signup_form()
        form.set("email", "ada@example.com")
        form.set("password", "s3cret")
        gate = asyncio.Event()

        async def save(model):
            await gate.wait()

        first = asyncio.create_task(form.submit_in(save))
        await wait_for_state(form, SubmitState.SUBMITTING)

        busy = await form.submit_in(save)
        assert busy.status == SubmissionStatus.BUSY
        assert busy.state == SubmitState.SUBMITTING
        assert busy.submit_count == 0
        assert busy.error is None

        gate.set()
        outcome = await first
        assert outcome.ok

    @pytest.mark.asyncio
    async def test_busy_while_validating(self):
        form = signup_form()
        gate = asyncio.Event()

        async def available(model, value):
            await gate.wait()

        form.register_async_field_validator("email", available)
        form.set("email", "ada@example.com")
        form.set("password", "s3cret")
        busy_events = []
        form.events.on(EventType.SUBMISSION_BUSY, busy_events.append)

        first = asyncio.create_task(form.submit_in(lambda model: None))
        await wait_for_state(form, SubmitState.VALIDATING)
        busy = await form.submit_in(lambda model: None)
        assert busy.status == SubmissionStatus.BUSY
        assert len(busy_events) == 1

        gate.set()
        outcome = await first
        assert outcome.ok


class TestAsyncValidationOnSubmit:
    """Test that submit accounts for async validators."""

    @pytest.mark.asyncio
    async def test_waits_for_in_flight_validation(self):
        form = signup_form()
        gate = asyncio.Event()

        async def available(model, value):
            await gate.wait()
            return "already registered" if value == "taken@example.com" else None

        form.register_async_field_validator("email", available)
        form.set("password", "s3cret")
        form.set_async("email", "taken@example.com")

        submit = asyncio.create_task(form.submit_in(lambda model: None))
        await wait_for_state(form, SubmitState.VALIDATING)
        gate.set()
        outcome = await submit
        assert outcome.status == SubmissionStatus.INVALID
        assert outcome.error.field_errors["email"].message == "already registered"

    @pytest.mark.asyncio
    async def test_runs_unchecked_async_validators(self):
        """A field never edited still gets its async validator run on submit."""
        calls = []

        async def available(model, value):
            calls.append(value)

        form = signup_form()
        form.register_async_field_validator("newsletter", available)
        form.set("email", "ada@example.com")
        form.set("password", "s3cret")
        outcome = await form.submit_in(lambda model: None)
        assert outcome.ok
        assert calls == [False]

    @pytest.mark.asyncio
    async def test_verdict_for_unchanged_model_reused(self):
        """A verdict computed against the model being submitted is not re-run."""
        calls = []

        async def available(model, value):
            calls.append(value)

        form = signup_form()
        form.register_async_field_validator("email", available)
        form.set("password", "s3cret")
        form.set_async("email", "ada@example.com")
        await form.wait_for_validation()
        await form.submit_in(lambda model: None)
        assert calls == ["ada@example.com"]

    @pytest.mark.asyncio
    async def test_verdict_rechecked_after_other_field_changes(self):
        calls = []

        async def available(model, value):
            calls.append((value, model["password"]))

        form = signup_form()
        form.register_async_field_validator("email", available)
        form.set_async("email", "ada@example.com")
        await form.wait_for_validation()
        form.set("password", "s3cret")
        outcome = await form.submit_in(lambda model: None)
        assert outcome.ok
        assert calls == [("ada@example.com", ""), ("ada@example.com", "s3cret")]

    @pytest.mark.asyncio
    async def test_dependent_rechecked_after_source_changes(self):
        """Changing a source invalidates the dependent's async verdict."""
        async def matches(model, value):
            return None if value == model["password"] else "Passwords do not match"

        form = FormController({"password": "a", "confirm": ""})
        form.register_async_field_validator("confirm", matches)
        form.register_dependency("password", "confirm")
        form.set_async("confirm", "a")
        await form.wait_for_validation()
        assert form.field_state("confirm").error is None

        form.set("password", "b")
        submitted = []
        outcome = await form.submit_in(submitted.append)
        assert outcome.status == SubmissionStatus.INVALID
        assert outcome.error.field_errors["confirm"].message == "Passwords do not match"
        assert submitted == []

    @pytest.mark.asyncio
    async def test_rechecked_when_model_changes_in_flight(self):
        """A verdict computed while another field changed is run again."""
        gate = asyncio.Event()
        seen = []

        async def matches(model, value):
            seen.append(model["password"])
            await gate.wait()
            return None if value == model["password"] else "mismatch"

        form = FormController({"password": "a", "confirm": ""})
        form.register_async_field_validator_with_debounce("confirm", 0, matches)
        form.set_async("confirm", "a")
        await asyncio.sleep(0)
        form.set("password", "b")

        submit = asyncio.create_task(form.submit_in(lambda model: None))
        gate.set()
        outcome = await submit
        assert outcome.status == SubmissionStatus.INVALID
        assert seen == ["a", "b"]


class TestRegistryAndReset:
    """Test registry freezing and resets around submission."""

    @pytest.mark.asyncio
    async def test_registry_frozen_after_submit(self):
        form = signup_form()
        await form.submit_in(lambda model: None)
        with pytest.raises(RegistrationError) as exc_info:
            form.register_required_field("newsletter")
        assert exc_info.value.reason == "registry_frozen"
        with pytest.raises(RegistrationError):
            form.register_dependency("email", "password")

    @pytest.mark.asyncio
    async def test_reset_clears_count(self):
        form = signup_form()
        await form.submit_in(lambda model: None)
        form.reset_to_initial()
        assert form.submit_state == SubmitState.IDLE
        assert form.submit_count == 0
        assert form.field_state("email").touched is False
        assert form.display_error("email") is None

    @pytest.mark.asyncio
    async def test_reset_during_attempt_abandons_it(self):
        form = signup_form()
        form.set("email", "ada@example.com")
        form.set("password", "s3cret")
        gate = asyncio.Event()

        async def save(model):
            await gate.wait()

        submit = asyncio.create_task(form.submit_in(save))
        await wait_for_state(form, SubmitState.SUBMITTING)
        form.reset_to_initial()
        gate.set()
        outcome = await submit
        assert outcome.status == SubmissionStatus.FAILED
        assert outcome.state == SubmitState.IDLE
        assert outcome.submit_count == 0


class TestSubmissionOutcome:
    """Test the outcome value object."""

    def test_to_dict(self):
        outcome = SubmissionOutcome(
            status=SubmissionStatus.BUSY, state=SubmitState.SUBMITTING, submit_count=2
        )
        assert outcome.to_dict() == {"status": "busy", "state": "submitting", "submitCount": 2}
