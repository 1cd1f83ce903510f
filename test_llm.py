"""Tests for the generation backends and provider selection."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import anthropic
import httpx
import pytest

from config import FatalInitError, PetConfig, Settings
from llm import (
    AUTH,
    CONFUSED_REPLY,
    NETWORK,
    PROTOCOL,
    AnthropicBackend,
    BackendError,
    OllamaBackend,
    create_backend,
)


def _ollama():
    return OllamaBackend("http://localhost:11434/", "llama2", "SYSTEM")


def _mock_response(json_data=None, status_code=200, json_error=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.is_success = 200 <= status_code < 300
    if json_error:
        resp.json.side_effect = json_error
    else:
        resp.json.return_value = json_data
    return resp


def _anthropic(client):
    return AnthropicBackend("key", "claude-test", "SYSTEM", client=client)


# ── Prompt formatting ─────────────────────────────────────────────────────


class TestAnthropicPrompt:
    backend = AnthropicBackend("key", "claude-test", "SYSTEM", client=MagicMock())

    def test_plain_input(self):
        assert self.backend.format_prompt("hi", []) == "hi"
        assert self.backend.format_prompt("hi", None) == "hi"

    def test_with_commands(self):
        prompt = self.backend.format_prompt("hi", ["ls -la", "git status"])
        assert prompt == "Recent commands I've seen you use:\nls -la\ngit status\n\nUser message: hi"


class TestOllamaPrompt:
    def test_no_context(self):
        assert _ollama().format_prompt("hi") == "Current user message: hi"

    def test_commands_then_input(self):
        prompt = _ollama().format_prompt("hi", ["ls"])
        assert prompt == "Recent commands:\nls\n\nCurrent user message: hi"

    def test_three_newest_exchanges_newest_first(self):
        backend = _ollama()
        for i in range(5):
            backend.add_to_history(f"u{i}", f"a{i}")
        prompt = backend.format_prompt("now", ["ls"])
        assert "u0" not in prompt and "u1" not in prompt
        assert prompt.index("User: u4") < prompt.index("User: u3") < prompt.index("User: u2")
        assert prompt.index("User: u2") < prompt.index("Recent commands:")
        assert prompt.splitlines()[-1] == "Current user message: now"

    def test_context_capped_at_five(self):
        backend = _ollama()
        for i in range(8):
            backend.add_to_history(f"u{i}", f"a{i}")
        assert backend.context == [(f"u{i}", f"a{i}") for i in range(3, 8)]


# ── Ollama generation ─────────────────────────────────────────────────────


class TestOllamaGenerate:
    @patch("llm.httpx.post")
    def test_success(self, mock_post):
        mock_post.return_value = _mock_response({"response": "purr"})
        assert _ollama().generate("hello") == "purr"
        args, kwargs = mock_post.call_args
        assert args[0] == "http://localhost:11434/api/generate"
        assert kwargs["json"] == {"model": "llama2", "prompt": "SYSTEM\nhello", "stream": False}

    @patch("llm.httpx.post")
    def test_missing_field_is_confused_reply(self, mock_post):
        mock_post.return_value = _mock_response({"done": True})
        assert _ollama().generate("hello") == CONFUSED_REPLY

    @patch("llm.httpx.post")
    def test_transport_error_is_network(self, mock_post):
        mock_post.side_effect = httpx.ConnectError("refused")
        with pytest.raises(BackendError) as exc:
            _ollama().generate("hello")
        assert exc.value.kind == NETWORK

    @pytest.mark.parametrize("error", [
        httpx.TooManyRedirects("loop"),
        httpx.DecodingError("garbled body"),
        httpx.InvalidURL("bad host"),
    ])
    @patch("llm.httpx.post")
    def test_other_httpx_errors_are_network(self, mock_post, error):
        mock_post.side_effect = error
        with pytest.raises(BackendError) as exc:
            _ollama().generate("hello")
        assert exc.value.kind == NETWORK

    def test_malformed_url_is_network(self):
        backend = OllamaBackend("http://[::1", "llama2", "SYSTEM")
        with pytest.raises(BackendError) as exc:
            backend.generate("hello")
        assert exc.value.kind == NETWORK

    @patch("llm.httpx.post")
    def test_bad_status_is_auth(self, mock_post):
        mock_post.return_value = _mock_response({"error": "nope"}, status_code=401)
        with pytest.raises(BackendError) as exc:
            _ollama().generate("hello")
        assert exc.value.kind == AUTH

    @patch("llm.httpx.post")
    def test_invalid_json_is_protocol(self, mock_post):
        mock_post.return_value = _mock_response(json_error=ValueError("bad json"))
        with pytest.raises(BackendError) as exc:
            _ollama().generate("hello")
        assert exc.value.kind == PROTOCOL

    @patch("llm.httpx.post")
    def test_non_object_is_protocol(self, mock_post):
        mock_post.return_value = _mock_response(["response"])
        with pytest.raises(BackendError) as exc:
            _ollama().generate("hello")
        assert exc.value.kind == PROTOCOL

    @patch("llm.httpx.post")
    def test_single_attempt(self, mock_post):
        mock_post.side_effect = httpx.ConnectError("refused")
        with pytest.raises(BackendError):
            _ollama().generate("hello")
        assert mock_post.call_count == 1


# ── Anthropic generation ──────────────────────────────────────────────────


class TestAnthropicGenerate:
    def test_returns_first_text_block(self):
        client = MagicMock()
        client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(type="thinking"), SimpleNamespace(type="text", text="meow")]
        )
        assert _anthropic(client).generate("hi") == "meow"
        _, kwargs = client.messages.create.call_args
        assert kwargs["system"] == "SYSTEM"
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]

    def test_no_text_is_confused_reply(self):
        client = MagicMock()
        client.messages.create.return_value = SimpleNamespace(content=[])
        assert _anthropic(client).generate("hi") == CONFUSED_REPLY

    def test_missing_content_is_protocol(self):
        client = MagicMock()
        client.messages.create.return_value = SimpleNamespace(content=None)
        with pytest.raises(BackendError) as exc:
            _anthropic(client).generate("hi")
        assert exc.value.kind == PROTOCOL

    def test_connection_error_is_network(self):
        client = MagicMock()
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        client.messages.create.side_effect = anthropic.APIConnectionError(request=request)
        with pytest.raises(BackendError) as exc:
            _anthropic(client).generate("hi")
        assert exc.value.kind == NETWORK

    def test_status_error_is_auth(self):
        client = MagicMock()
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        response = httpx.Response(401, request=request)
        client.messages.create.side_effect = anthropic.AuthenticationError(
            "invalid x-api-key", response=response, body=None
        )
        with pytest.raises(BackendError) as exc:
            _anthropic(client).generate("hi")
        assert exc.value.kind == AUTH


# ── Provider selection ────────────────────────────────────────────────────


class TestCreateBackend:
    def test_anthropic_requires_key(self):
        with pytest.raises(FatalInitError):
            create_backend(PetConfig(llm_provider="anthropic"), Settings(anthropic_api_key=""))

    def test_anthropic_with_key(self):
        backend = create_backend(PetConfig(), Settings(anthropic_api_key="sk-test", claude_model="m"))
        assert isinstance(backend, AnthropicBackend)
        assert backend.model == "m"

    def test_ollama_needs_no_key(self):
        cfg = PetConfig(llm_provider="ollama", ollama_url="http://box:1234", ollama_model="mistral")
        backend = create_backend(cfg, Settings(anthropic_api_key=""))
        assert isinstance(backend, OllamaBackend)
        assert backend.url == "http://box:1234"
        assert backend.model == "mistral"
