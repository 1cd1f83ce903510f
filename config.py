import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path

import httpx
import yaml
from dotenv import load_dotenv

load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), ".env"))

logger = logging.getLogger("petcli.config")

PROVIDERS = ("anthropic", "ollama")

DEFAULT_ASCII = r"""
  /\___/\
 (  o o  )
 (  =^=  )
  (____)
"""


class FatalInitError(Exception):
    """Startup cannot continue (e.g. missing credential for the provider)."""


class ConfigError(Exception):
    """Configuration file is unreadable or malformed."""


@dataclass
class Settings:
    anthropic_api_key: str = os.getenv("ANTHROPIC_API_KEY", "")
    claude_model: str = os.getenv("CLAUDE_MODEL", "claude-haiku-4-5-20251001")
    http_timeout: int = int(os.getenv("HTTP_TIMEOUT", "30"))
    home: str = os.getenv("PETCLI_HOME", "")
    log_level: str = os.getenv("PETCLI_LOG_LEVEL", "WARNING")


settings = Settings()


@dataclass
class PetConfig:
    command_history_limit: int = 50
    pet_name: str = "Whiskers"
    pet_ascii: str = DEFAULT_ASCII
    llm_provider: str = "anthropic"
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llama2"


def config_dir(s: Settings | None = None) -> Path:
    s = s or settings
    if s.home:
        return Path(s.home)
    return Path.home() / ".config" / "petcli"


def ensure_config_dir(s: Settings | None = None) -> Path:
    path = config_dir(s)
    path.mkdir(parents=True, exist_ok=True)
    return path


def config_path(s: Settings | None = None) -> Path:
    return config_dir(s) / "config.yaml"


def state_path(s: Settings | None = None) -> Path:
    return config_dir(s) / "state.json"


def log_path(s: Settings | None = None) -> Path:
    return config_dir(s) / "petcli.log"


def parse_config(data) -> PetConfig:
    """Build a PetConfig from a decoded YAML document, validating types."""
    if data is None:
        raise ConfigError("config file is empty")
    if not isinstance(data, dict):
        raise ConfigError(f"expected a mapping, got {type(data).__name__}")

    cfg = PetConfig()
    for key, default in asdict(cfg).items():
        if key not in data:
            continue
        value = data[key]
        if not isinstance(value, type(default)) or isinstance(value, bool):
            raise ConfigError(f"{key}: expected {type(default).__name__}, got {value!r}")
        setattr(cfg, key, value)

    if cfg.llm_provider not in PROVIDERS:
        raise ConfigError(f"llm_provider: unknown provider {cfg.llm_provider!r}")
    if cfg.command_history_limit < 0:
        raise ConfigError("command_history_limit must not be negative")
    try:
        url = httpx.URL(cfg.ollama_url)
    except httpx.InvalidURL as e:
        raise ConfigError(f"ollama_url: {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigError(f"ollama_url: expected an http(s) URL, got {cfg.ollama_url!r}")
    return cfg


def save_config(cfg: PetConfig, path: Path | None = None):
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(asdict(cfg), f, default_flow_style=False, allow_unicode=True)


def load_config(path: Path | None = None) -> PetConfig:
    """Load the YAML config; on any problem fall back to defaults and rewrite the file."""
    path = path or config_path()
    if path.exists():
        try:
            with open(path) as f:
                return parse_config(yaml.safe_load(f))
        except (OSError, yaml.YAMLError, ConfigError) as e:
            logger.warning("Config %s unusable (%s), rewriting defaults", path, e)
    else:
        logger.info("No config at %s, writing defaults", path)

    cfg = PetConfig()
    try:
        save_config(cfg, path)
    except OSError as e:
        logger.error("Could not write default config to %s: %s", path, e)
    return cfg
