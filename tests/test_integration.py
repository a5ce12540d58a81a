"""Integration tests for complete form flows.

Tests cover end-to-end scenarios combining:
- Schema validators, custom validators and async validators
- Dependency cascades (password / confirmation)
- Error display gating across edits, blurs and submits
- Draft save and restore around a submission
"""

import asyncio
from dataclasses import dataclass

import pytest

from formstate import (
    FormController,
    FormOptions,
    InMemoryDraftStore,
    SchemaValidator,
    SubmissionStatus,
    SubmitState,
)
from formstate.types import EventType, FieldErrorCode


@dataclass(frozen=True)
class SignupForm:
    username: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""
    accept_terms: bool = False


def passwords_match(model, value):
    return None if value == model.password else "Passwords do not match"


def must_accept(model, value):
    return None if value else "You must accept the terms"


def build_signup(taken=("admin",)):
    form = FormController(SignupForm())
    for key in ("username", "email", "password"):
        form.register_required_field(key)
    form.register_field_validator("email", SchemaValidator({"type": "string", "format": "email"}, "email"))
    form.register_field_validator(
        "password", SchemaValidator({"type": "string", "minLength": 8}, "password")
    )
    form.register_field_validator("confirm_password", passwords_match)
    form.register_field_validator("accept_terms", must_accept)
    form.register_dependency("password", "confirm_password")

    async def username_available(model, value):
        await asyncio.sleep(0)
        return "Username is taken" if value in taken else None

    form.register_async_field_validator_with_debounce("username", 5, username_available)
    return form


class TestPasswordConfirmation:
    """Test the classic dependent-field scenario."""

    def test_changing_source_revalidates_dependent(self):
        form = build_signup()
        form.set("password", "correct horse")
        form.set("confirm_password", "correct horse")
        assert form.field_state("confirm_password").error is None

        form.set("password", "battery staple")
        error = form.field_state("confirm_password").error
        assert error.message == "Passwords do not match"
        # the dependent was never touched, so the mismatch is not shown yet
        assert form.display_error("confirm_password") is None

    def test_matching_source_clears_dependent_error(self):
        """Fixing the source clears the dependent's error without touching it."""
        form = build_signup()
        form.set("password", "correct horse")
        form.set("confirm_password", "correct horsf")
        assert form.field_state("confirm_password").error is not None

        form.set("password", "correct horsf")
        state = form.field_state("confirm_password")
        assert state.error is None
        assert state.touched is False

    def test_transitive_cascade(self):
        form = FormController({"a": "", "b": "", "c": ""})
        seen = []

        def record(key):
            def check(model, value):
                seen.append(key)

            return check

        for key in ("b", "c"):
            form.register_field_validator(key, record(key))
        form.register_dependency("a", "b")
        form.register_dependency("b", "c")
        form.set("a", "x")
        assert seen == ["b", "c"]

    @pytest.mark.asyncio
    async def test_async_dependents_scheduled(self):
        """set_async also schedules async validators of dependents."""
        calls = []

        async def check(model, value):
            calls.append(model["b"])

        form = FormController({"a": "", "b": "start"})
        form.register_async_field_validator("b", check)
        form.register_dependency("a", "b")
        form.set_async("a", "x")
        await form.wait_for_validation()
        assert calls == ["start"]


class TestSignupFlow:
    """Test a full signup from first keystroke to successful submit."""

    @pytest.mark.asyncio
    async def test_happy_path(self):
        form = build_signup()
        username = form.bind_text_input("username", live=True)
        email = form.bind_text_input("email")
        password = form.bind_password_input("password")
        confirm = form.bind_password_input("confirm_password")
        terms = form.bind_checkbox("accept_terms")

        username.set("ada")
        await form.wait_for_validation()
        email.set("ada@example.com")
        password.set("correct horse")
        confirm.set("correct horse")
        terms.set(True)

        submitted = []
        outcome = await form.submit_in(submitted.append)
        assert outcome.ok
        assert submitted == [
            SignupForm("ada", "ada@example.com", "correct horse", "correct horse", True)
        ]
        assert form.submit_state == SubmitState.SUCCEEDED

    @pytest.mark.asyncio
    async def test_fix_errors_after_failed_submit(self):
        form = build_signup()
        form.set("username", "admin")
        form.set("email", "not-an-email")
        form.set("password", "short")

        outcome = await form.submit_in(lambda model: None)
        assert outcome.status == SubmissionStatus.INVALID
        errors = outcome.error.field_errors
        assert errors["username"].message == "Username is taken"
        assert errors["email"].code == FieldErrorCode.INVALID_FORMAT
        assert errors["password"].code == FieldErrorCode.TOO_SHORT
        assert errors["accept_terms"].message == "You must accept the terms"
        assert form.display_error("accept_terms") is not None

        form.set_async("username", "ada")
        form.set("email", "ada@example.com")
        form.set("password", "correct horse")
        form.set("confirm_password", "correct horse")
        form.set("accept_terms", True)
        outcome = await form.submit_in(lambda model: True)
        assert outcome.ok
        # submit_count only goes back to zero on reset
        assert outcome.submit_count == 1

    @pytest.mark.asyncio
    async def test_event_stream(self):
        form = build_signup()
        log = []
        form.events.on_any(log.append)
        form.set_async("username", "admin")
        await form.wait_for_validation()
        types = [event.type for event in log]
        assert types[:3] == [
            EventType.FIELD_UPDATED,
            EventType.VALIDATION_PASSED,
            EventType.VALIDATION_STARTED,
        ]
        assert types[-1] == EventType.VALIDATION_FAILED
        assert log[-1].payload["error"]["message"] == "Username is taken"


class TestDraftRoundTrip:
    """Test restoring an abandoned form from a draft."""

    @pytest.mark.asyncio
    async def test_resume_from_draft(self):
        store = InMemoryDraftStore()
        first = build_signup()
        first.set("username", "ada")
        first.set("email", "ada@example.com")
        first.touch("email")
        first.save_draft(store, include_flags=True)
        first.close()

        second = build_signup()
        assert second.load_draft(store, restore_touched=True)
        assert second.get("email") == "ada@example.com"
        assert second.field_state("email").touched is True
        assert second.snapshot().is_dirty

        second.set("password", "correct horse")
        second.set("confirm_password", "correct horse")
        second.set("accept_terms", True)
        outcome = await second.submit_in(lambda model: None)
        assert outcome.ok
        second.clear_draft(store)
        assert len(store) == 0


class TestOptions:
    """Test form options serialization."""

    def test_options_round_trip(self):
        options = FormOptions(validate_mode="on_blur", default_debounce_ms=300)
        assert FormOptions.from_dict(options.to_dict()) == options

    def test_negative_debounce_rejected(self):
        with pytest.raises(ValueError):
            FormOptions(default_debounce_ms=-1)
