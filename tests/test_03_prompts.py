"""
Tests for the prompt template engine and input validators.

Tests cover:
- apply_template() substitution, fallback and passthrough
- add_template() rejection leaves the registry untouched
- "default" is protected from removal
- validate_text / validate_voice_id / validate_template_name
"""
import pytest

from tts_proxy.services.prompts import DEFAULT_TEMPLATE_NAME, PromptSystem
from tts_proxy.services.validators import (
    ValidationError,
    validate_template_name,
    validate_text,
    validate_voice_id,
)


@pytest.fixture
def prompts():
    return PromptSystem(enabled=True, default_template="Say: {{text}}")


class TestApplyTemplate:
    """Tests for PromptSystem.apply_template()."""

    def test_default_template(self, prompts):
        assert prompts.apply_template("hello") == "Say: hello"

    def test_length_matches_template(self, prompts):
        body = prompts.list_templates()[DEFAULT_TEMPLATE_NAME]
        text = "some input text"
        result = prompts.apply_template(text)
        assert len(result) == len(body) - len("{{text}}") + len(text)

    def test_every_placeholder_replaced(self, prompts):
        prompts.add_template("twice", "{{text}} and again {{text}}")
        assert prompts.apply_template("hi", "twice") == "hi and again hi"

    def test_unknown_name_falls_back_to_default(self, prompts):
        assert prompts.apply_template("hello", "nope") == "Say: hello"

    def test_disabled_is_passthrough(self):
        disabled = PromptSystem(enabled=False, default_template="Say: {{text}}")
        assert disabled.apply_template("hello", "default") == "hello"

    def test_missing_default_returns_text(self):
        broken = PromptSystem(enabled=True, default_template="")
        assert broken.apply_template("hello") == "hello"

    def test_text_with_braces_is_literal(self, prompts):
        assert prompts.apply_template("{{text}}") == "Say: {{text}}"


class TestTemplateRegistry:
    """Tests for add/remove/list."""

    def test_add_and_overwrite(self, prompts):
        assert prompts.add_template("news", "News: {{text}}")
        assert prompts.add_template("news", "Update: {{text}}")
        assert prompts.apply_template("x", "news") == "Update: x"

    @pytest.mark.parametrize("name,body", [
        ("", "Say {{text}}"),
        ("news", ""),
        ("news", "no placeholder here"),
        (None, "Say {{text}}"),
    ])
    def test_add_rejected_without_mutation(self, prompts, name, body):
        before = prompts.list_templates()
        assert prompts.add_template(name, body) is False
        assert prompts.list_templates() == before

    def test_default_can_be_overwritten(self, prompts):
        assert prompts.add_template("default", "Now: {{text}}")
        assert prompts.apply_template("x") == "Now: x"

    def test_default_cannot_be_removed(self, prompts):
        assert prompts.remove_template("default") is False
        assert "default" in prompts.list_templates()

    def test_remove(self, prompts):
        prompts.add_template("news", "News: {{text}}")
        assert prompts.remove_template("news") is True
        assert prompts.remove_template("news") is False

    def test_list_is_snapshot(self, prompts):
        snapshot = prompts.list_templates()
        prompts.add_template("later", "Later: {{text}}")
        assert "later" not in snapshot


class TestValidators:
    """Tests for input validators."""

    @pytest.mark.parametrize("text", [None, "", 0])
    def test_empty_text_rejected(self, text):
        with pytest.raises(ValidationError) as exc:
            validate_text(text)
        assert exc.value.status_code == 400
        assert exc.value.code == "TEXT_REQUIRED"
        assert exc.value.message == "text is required"

    def test_text_returned_unstripped(self):
        assert validate_text("  hi  ") == "  hi  "

    @pytest.mark.parametrize("text", ["   ", "\n\t"])
    def test_whitespace_only_text_accepted(self, text):
        assert validate_text(text) == text

    def test_voice_id(self):
        assert validate_voice_id(None) is None
        assert validate_voice_id("21m00Tcm4TlvDq8ikWAM") == "21m00Tcm4TlvDq8ikWAM"

    @pytest.mark.parametrize("voice_id,code", [
        ("a" * 129, "VOICE_ID_TOO_LONG"),
        ("../user", "VOICE_ID_INVALID"),
        ("has space", "VOICE_ID_INVALID"),
    ])
    def test_voice_id_rejected(self, voice_id, code):
        with pytest.raises(ValidationError) as exc:
            validate_voice_id(voice_id)
        assert exc.value.code == code

    def test_template_name_too_long(self):
        with pytest.raises(ValidationError):
            validate_template_name("t" * 101)
        assert validate_template_name("news") == "news"
