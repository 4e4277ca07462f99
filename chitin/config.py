"""Configuration management for Chitin.

Loads settings from an INI file and the environment:
- ServerConfig: socket/PID paths, history bound, handshake timeout
- ProviderConfig: which backend to run and how to reach it

Lookup order for the file: $CHITIN_CONFIG, ./chitin.cfg,
~/.config/chitin/config.cfg. Environment variables (and the optional
~/.config/chitin/.env file) override values from the file.
"""

import configparser
from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import dotenv_values

from chitin.providers import PROVIDER_NAMES

CONFIG_DIR = Path.home() / ".config" / "chitin"
CONFIG_PATH = CONFIG_DIR / "config.cfg"
ENV_PATH = CONFIG_DIR / ".env"
LOCAL_CONFIG_NAME = "chitin.cfg"

DEFAULT_SOCKET_PATH = "/tmp/chitin.sock"
DEFAULT_PID_PATH = "/tmp/chitin.pid"
DEFAULT_PROVIDER = "openai"

# Environment variable -> raw config key
ENV_OVERRIDES = {
    "CHITIN_SOCKET_PATH": "socket_path",
    "CHITIN_PID_PATH": "pid_path",
    "CHITIN_HISTORY_LIMIT": "history_limit",
    "CHITIN_PROVIDER": "llm_provider",
    "CHITIN_API_BASE": "api_base",
    "CHITIN_API_KEY": "api_key",
    "CHITIN_MODEL": "llm_model",
}

API_KEY_MAP = {
    "openai": "openai_api_key",
    "openai-compatible": "openai_api_key",
    "mistralai": "mistral_api_key",
    "mistral": "mistral_api_key",
}


@dataclass
class ServerConfig:
    socket_path: str = DEFAULT_SOCKET_PATH
    pid_path: str = DEFAULT_PID_PATH
    history_limit: int = 10
    handshake_timeout_ms: int = 200


@dataclass
class ProviderConfig:
    provider: str = DEFAULT_PROVIDER
    model: Optional[str] = None
    api_key: str = ""
    api_base: Optional[str] = None
    temperature: float = 0.2
    timeout: int = 30


@dataclass
class ChitinConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)


def find_config_path() -> Optional[Path]:
    """Return the first configuration file that applies, or None."""
    env_path = os.environ.get("CHITIN_CONFIG")
    if env_path:
        return Path(env_path).expanduser()

    local = Path.cwd() / LOCAL_CONFIG_NAME
    if local.exists():
        return local

    if CONFIG_PATH.exists():
        return CONFIG_PATH

    return None


def load_raw_config(path: Optional[Path] = None) -> Dict[str, str]:
    """
    Load configuration values from the INI file.
    Values from every section are returned with lowercase keys.

    Raises:
        ValueError: If the file exists but cannot be parsed
    """
    path = path if path is not None else find_config_path()
    cfg = configparser.ConfigParser()
    data: Dict[str, str] = {}

    if path is None or not path.exists():
        return data

    try:
        cfg.read(path)
    except configparser.Error as e:
        raise ValueError(f"Invalid config file {path}: {e}") from e

    data.update({k.lower(): v for k, v in cfg.defaults().items()})
    for section in cfg.sections():
        data.update({k.lower(): v for k, v in cfg[section].items()})
    return data


def apply_env_overrides(
    raw: Dict[str, str],
    environ: Optional[Mapping[str, str]] = None,
    env_file: Optional[Path] = ENV_PATH,
) -> Dict[str, str]:
    """
    Overlay CHITIN_* variables on top of the file values.

    The process environment wins over the .env file.
    """
    merged = dict(raw)
    sources: Dict[str, str] = {}
    if env_file is not None and env_file.exists():
        sources.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    sources.update(os.environ if environ is None else environ)

    for env_name, key in ENV_OVERRIDES.items():
        value = sources.get(env_name)
        if value is not None and value.strip() != "":
            merged[key] = value.strip()
    return merged


def _get_int(raw: Mapping[str, str], key: str, default: int) -> int:
    value = raw.get(key)
    if value is None or str(value).strip() == "":
        return default
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        raise ValueError(f"Config value '{key}' must be a number, got {value!r}") from None


def _get_float(raw: Mapping[str, str], key: str, default: float) -> float:
    value = raw.get(key)
    if value is None or str(value).strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Config value '{key}' must be a number, got {value!r}") from None


def get_server_config(raw: Mapping[str, str]) -> ServerConfig:
    """
    Build a ServerConfig from raw configuration values.
    Raises ValueError on malformed numbers or a history limit below 1.
    """
    history_limit = _get_int(raw, "history_limit", 10)
    if history_limit < 1:
        raise ValueError(f"history_limit must be >= 1, got {history_limit}")

    handshake_timeout_ms = _get_int(raw, "handshake_timeout_ms", 200)
    if handshake_timeout_ms <= 0:
        raise ValueError("handshake_timeout_ms must be positive")

    return ServerConfig(
        socket_path=str(raw.get("socket_path") or DEFAULT_SOCKET_PATH),
        pid_path=str(raw.get("pid_path") or DEFAULT_PID_PATH),
        history_limit=history_limit,
        handshake_timeout_ms=handshake_timeout_ms,
    )


def get_provider_config(raw: Mapping[str, str]) -> ProviderConfig:
    """
    Build a ProviderConfig from raw configuration values.
    Raises ValueError for an unknown provider or a remote provider without
    an API key.
    """
    provider = (raw.get("llm_provider") or DEFAULT_PROVIDER).strip().lower()
    if provider not in PROVIDER_NAMES:
        raise ValueError(
            f"Unknown provider '{provider}'. Expected one of: {', '.join(PROVIDER_NAMES)}."
        )
    model = (raw.get("llm_model") or "").strip() or None
    api_base = (raw.get("api_base") or "").strip() or None

    api_key = (raw.get("api_key") or "").strip()
    key_name = API_KEY_MAP.get(provider)
    if not api_key and key_name:
        api_key = (raw.get(key_name) or "").strip()
    if key_name and not api_key:
        raise ValueError(
            f"Missing API key for provider '{provider}'. Expected key '{key_name}'."
        )

    return ProviderConfig(
        provider=provider,
        model=model,
        api_key=api_key,
        api_base=api_base,
        temperature=_get_float(raw, "temperature", 0.2),
        timeout=_get_int(raw, "timeout", 30),
    )


def load_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    env_file: Optional[Path] = ENV_PATH,
) -> ChitinConfig:
    """
    Load the full daemon configuration (file + environment).

    Called once at startup and again on every reload.
    """
    raw = apply_env_overrides(load_raw_config(path), environ=environ, env_file=env_file)
    return ChitinConfig(
        server=get_server_config(raw),
        provider=get_provider_config(raw),
    )


def load_server_config(path: Optional[Path] = None) -> ServerConfig:
    """Load only the server section; never fails on missing API keys (client side)."""
    raw = apply_env_overrides(load_raw_config(path))
    return get_server_config(raw)
