"""Tests for the model table and result types."""

import dataclasses

import pytest

from venice_ai_bridge.errors import InvalidRequest
from venice_ai_bridge.models import (
    AVAILABLE_MODELS,
    PromptResult,
    Reference,
    Session,
    model_matches,
    resolve_model,
)
from helpers import FakePage


class TestResolveModel:

    def test_known_names(self):
        assert resolve_model("default") == "hermes-2-theta-web"
        assert resolve_model("dogge") == "dogge-llama-3-70b"
        assert resolve_model("llama3") == "llama-3.1-405b"

    def test_missing_name_uses_default(self):
        assert resolve_model(None) == AVAILABLE_MODELS["default"]
        assert resolve_model("") == AVAILABLE_MODELS["default"]

    def test_unknown_name_is_invalid_request(self):
        with pytest.raises(InvalidRequest, match="gpt-4"):
            resolve_model("gpt-4")

    def test_internal_id_is_not_a_public_name(self):
        with pytest.raises(InvalidRequest):
            resolve_model("llama-3.1-405b")


class TestModelMatches:

    def test_hyphens_match_spaces_case_insensitive(self):
        assert model_matches("Llama 3.1 405B", "llama-3.1-405b")

    def test_substring_of_longer_label(self):
        assert model_matches("Model: Hermes 2 Theta Web (default)", "hermes-2-theta-web")

    def test_different_model(self):
        assert not model_matches("Dogge Llama 3 70B", "llama-3.1-405b")

    def test_empty_indicator(self):
        assert not model_matches("", "hermes-2-theta-web")
        assert not model_matches(None, "hermes-2-theta-web")


class TestPromptResult:

    def test_is_immutable(self):
        result = PromptResult(response="Hi")
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.response = "changed"

    def test_to_dict(self):
        result = PromptResult(
            response="Hi",
            references=[Reference(number="1", text="Doc", url="http://x")],
            references_markdown="1. [Doc](http://x)",
        )
        assert result.to_dict() == {
            "response": "Hi",
            "references": [{"number": "1", "text": "Doc", "url": "http://x"}],
            "references_markdown": "1. [Doc](http://x)",
        }


class TestSession:

    def test_touch_without_idle_keeps_deadline(self):
        session = Session(conversation_id="abc", page=FakePage())
        session.touch(60)
        deadline = session.idle_deadline
        session.touch()
        assert session.idle_deadline == deadline
        assert session.last_activity >= session.created_at

    def test_touch_with_idle_moves_deadline(self):
        session = Session(conversation_id="abc", page=FakePage())
        session.touch(1)
        first = session.idle_deadline
        session.touch(60)
        assert session.idle_deadline > first

    def test_is_closed_follows_page(self):
        page = FakePage()
        session = Session(conversation_id="abc", page=page)
        assert not session.is_closed
        page.closed = True
        assert session.is_closed
