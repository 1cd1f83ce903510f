import json
import logging

import anthropic
import httpx

from config import FatalInitError, PetConfig, Settings, settings
from personality import generate_system_prompt

logger = logging.getLogger("petcli.llm")

CONFUSED_REPLY = "*meows confusedly* Something went wrong with my response..."
MAX_CONTEXT = 5
PROMPT_CONTEXT = 3

NETWORK = "network"
AUTH = "auth"
PROTOCOL = "protocol"


class BackendError(Exception):
    """A single generation attempt failed.

    ``kind`` is one of ``network`` (transport failure), ``auth`` (non-success
    status from the provider) or ``protocol`` (payload of the wrong shape).
    """

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind

    def __str__(self):
        return f"[{self.kind}] {super().__str__()}"


class Backend:
    """Shared interface of the generation providers."""

    name = "backend"

    def __init__(self, system_prompt: str):
        self.system_prompt = system_prompt
        self.context: list[tuple[str, str]] = []

    def format_prompt(self, user_input: str, recent_commands: list[str] | None = None) -> str:
        raise NotImplementedError

    def generate(self, prompt: str) -> str:
        raise NotImplementedError

    def add_to_history(self, user: str, response: str):
        self.context.append((user, response))
        self.context = self.context[-MAX_CONTEXT:]


class AnthropicBackend(Backend):
    name = "anthropic"

    def __init__(self, api_key: str, model: str, system_prompt: str, timeout: int = 30, client=None):
        super().__init__(system_prompt)
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    def _get_client(self):
        if self._client is None:
            self._client = anthropic.Anthropic(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def format_prompt(self, user_input: str, recent_commands: list[str] | None = None) -> str:
        if recent_commands:
            return (
                "Recent commands I've seen you use:\n"
                + "\n".join(recent_commands)
                + f"\n\nUser message: {user_input}"
            )
        return user_input

    def generate(self, prompt: str) -> str:
        client = self._get_client()
        try:
            response = client.messages.create(
                model=self.model,
                max_tokens=1024,
                system=self.system_prompt,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIConnectionError as e:
            raise BackendError(NETWORK, f"failed to reach Anthropic: {e}") from e
        except anthropic.APIStatusError as e:
            raise BackendError(AUTH, f"Anthropic request failed with status {e.status_code}") from e
        except anthropic.APIResponseValidationError as e:
            raise BackendError(PROTOCOL, f"unexpected Anthropic payload: {e}") from e

        content = getattr(response, "content", None)
        if not isinstance(content, list):
            raise BackendError(PROTOCOL, "Anthropic response has no content list")
        for block in content:
            text = getattr(block, "text", None)
            if isinstance(text, str):
                return text
        return CONFUSED_REPLY


class OllamaBackend(Backend):
    name = "ollama"

    def __init__(self, url: str, model: str, system_prompt: str, timeout: int = 30):
        super().__init__(system_prompt)
        self.url = url.rstrip("/")
        self.model = model
        self.timeout = timeout

    def format_prompt(self, user_input: str, recent_commands: list[str] | None = None) -> str:
        parts = []
        # Newest exchange first.
        for user, response in reversed(self.context[-PROMPT_CONTEXT:]):
            parts.append(f"User: {user}\nAssistant: {response}\n\n")
        if recent_commands:
            parts.append("Recent commands:\n" + "\n".join(recent_commands) + "\n\n")
        parts.append(f"Current user message: {user_input}")
        return "".join(parts)

    def generate(self, prompt: str) -> str:
        try:
            r = httpx.post(
                f"{self.url}/api/generate",
                json={
                    "model": self.model,
                    "prompt": f"{self.system_prompt}\n{prompt}",
                    "stream": False,
                },
                timeout=self.timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise BackendError(NETWORK, f"failed to reach Ollama at {self.url}: {e}") from e

        if not r.is_success:
            raise BackendError(AUTH, f"Ollama request failed with status {r.status_code}")

        try:
            data = r.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise BackendError(PROTOCOL, f"Ollama returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise BackendError(PROTOCOL, f"Ollama returned {type(data).__name__}, expected object")

        text = data.get("response")
        if not isinstance(text, str):
            return CONFUSED_REPLY
        return text


def create_backend(cfg: PetConfig, s: Settings | None = None) -> Backend:
    """Pick the provider named in the config. Raises FatalInitError on missing credentials."""
    s = s or settings
    system = generate_system_prompt(cfg.llm_provider, cfg.pet_name)
    if cfg.llm_provider == "ollama":
        logger.info("Using Ollama backend %s (%s)", cfg.ollama_url, cfg.ollama_model)
        return OllamaBackend(cfg.ollama_url, cfg.ollama_model, system, timeout=s.http_timeout)
    if not s.anthropic_api_key:
        raise FatalInitError(
            "ANTHROPIC_API_KEY not set. Export it or put it in a .env file next to petcli."
        )
    logger.info("Using Anthropic backend (%s)", s.claude_model)
    return AnthropicBackend(s.anthropic_api_key, s.claude_model, system, timeout=s.http_timeout)
