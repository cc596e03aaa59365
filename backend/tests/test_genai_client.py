"""
Tests for model response parsing and provider selection.
"""
import pytest

from app.services.genai_client import GenAIError, get_provider, parse_json_response


class TestParseJsonResponse:

    def test_raw_json(self):
        assert parse_json_response('{"valid": true}') == {"valid": True}

    def test_fenced_block(self):
        text = 'Here you go:\n```json\n{"summary": "ok"}\n```'
        assert parse_json_response(text) == {"summary": "ok"}

    def test_object_inside_prose(self):
        assert parse_json_response('Sure! {"name": "Dana"} Hope that helps.') == {"name": "Dana"}

    def test_unparseable(self):
        with pytest.raises(GenAIError):
            parse_json_response("I cannot help with that.")


class TestGetProvider:

    def test_unknown_provider(self, monkeypatch):
        monkeypatch.setenv("GENAI_PROVIDER", "skynet")
        with pytest.raises(ValueError):
            get_provider()

    def test_gemini_requires_key(self, monkeypatch):
        monkeypatch.setenv("GENAI_PROVIDER", "gemini")
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("API_KEY", raising=False)
        with pytest.raises(GenAIError):
            get_provider()
