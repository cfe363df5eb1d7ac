"""Configuration constants and the persisted ~/.branchcraft settings file."""

import os
from pathlib import Path
from typing import Callable, Dict, Optional

from dotenv import dotenv_values, find_dotenv, load_dotenv, set_key
from pydantic import BaseModel

from .errors import ConfigError

# -----------------------------------------------------------------------------
# CONFIGURATION CONSTANTS
# -----------------------------------------------------------------------------

# Token budget tiers (standard / premium subscription)
STANDARD_TOKEN_LIMIT: int = 2048
PREMIUM_TOKEN_LIMIT: int = 4096
TOKEN_LIMIT_TIERS: tuple = (STANDARD_TOKEN_LIMIT, PREMIUM_TOKEN_LIMIT)

# Token estimation
CHARS_PER_TOKEN: int = 4

# Model configuration
DEFAULT_MODEL: str = "gpt-3.5-turbo"
DEFAULT_TEMPERATURE: float = 0.2

# File transmission limits
DEFAULT_TRUNCATE_CHARS: int = 4000
BLOCK_SPLIT_THRESHOLD_CHARS: int = 2000
MIN_FUZZY_SCORE: int = 80  # Minimum score for requested path fuzzy matching

# Log files (overwritten on every run)
TRANSCRIPT_LOG_NAME: str = "log.branchcraft.latest.json"
CONVERSATION_LOG_NAME: str = "log.branchcraft.conversation.txt"

# Repository file filter
EXTENSIONS_FILE_NAME: str = ".ext"
DEFAULT_EXTENSIONS: tuple = (".js", ".ts", ".py")

# Persisted settings
CONFIG_FILE_NAME: str = ".branchcraft"
API_KEY_SETTING: str = "OPENAI_KEY"
TOKEN_LIMIT_SETTING: str = "TOKEN_LIMIT"


class Settings(BaseModel):
    api_key: str
    token_limit: int = STANDARD_TOKEN_LIMIT
    model: str = DEFAULT_MODEL
    base_url: Optional[str] = None


def default_config_path() -> Path:
    return Path.home() / CONFIG_FILE_NAME


def read_config(config_path: Path) -> Dict[str, str]:
    """
    Read the KEY=value settings file.

    A missing file reads as empty. Keys without a value are left out.

    Args:
        config_path: Path of the settings file

    Returns:
        Mapping of setting names to raw string values
    """
    values = dotenv_values(config_path, interpolate=False)
    return {key: value for key, value in values.items() if value is not None}


def save_setting(config_path: Path, key: str, value: str) -> None:
    """Write one setting, keeping every other line of the file."""
    config_path.touch(exist_ok=True)
    set_key(config_path, key, value, quote_mode="never")


def parse_token_limit(raw: Optional[str]) -> int:
    try:
        limit = int(str(raw).strip())
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid token limit: {raw!r}")
    if limit not in TOKEN_LIMIT_TIERS:
        raise ConfigError(f"Invalid token limit: {limit} (expected one of {TOKEN_LIMIT_TIERS})")
    return limit


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """
    Build Settings from the environment and the persisted settings file.

    OPENAI_API_KEY in the environment (or a .env file) takes precedence over the
    stored key.

    Raises:
        ConfigError: If the API key is missing or the token limit is not a known tier
    """
    load_dotenv(find_dotenv(usecwd=True))
    config_path = config_path or default_config_path()
    stored = read_config(config_path)

    api_key = os.getenv("OPENAI_API_KEY") or stored.get(API_KEY_SETTING, "")
    if not api_key:
        raise ConfigError(f"No API key found in {config_path} or OPENAI_API_KEY")

    return Settings(
        api_key=api_key,
        token_limit=parse_token_limit(stored.get(TOKEN_LIMIT_SETTING)),
        model=os.getenv("BRANCHCRAFT_MODEL") or DEFAULT_MODEL,
        base_url=os.getenv("OPENAI_BASE_URL") or None,
    )


def ensure_settings(ask: Callable[[str], str], config_path: Optional[Path] = None) -> Settings:
    """
    Load settings, asking for and persisting whatever is absent or invalid.

    Args:
        ask: Callable that shows a question and returns the user's answer
        config_path: Settings file, defaults to ~/.branchcraft

    Returns:
        Complete Settings
    """
    load_dotenv(find_dotenv(usecwd=True))
    config_path = config_path or default_config_path()
    stored = read_config(config_path)

    if not (os.getenv("OPENAI_API_KEY") or stored.get(API_KEY_SETTING)):
        api_key = ask("No API key found. Please enter your OpenAI API key: ").strip()
        if not api_key:
            raise ConfigError("An API key is required")
        save_setting(config_path, API_KEY_SETTING, api_key)

    try:
        parse_token_limit(stored.get(TOKEN_LIMIT_SETTING))
    except ConfigError:
        answer = ask(
            "Do you have a premium OpenAI subscription? "
            "(Affects the number of tokens you can use per request.) [yes/no]: "
        )
        premium = answer.strip().lower() in ("", "y", "yes")
        limit = PREMIUM_TOKEN_LIMIT if premium else STANDARD_TOKEN_LIMIT
        save_setting(config_path, TOKEN_LIMIT_SETTING, str(limit))

    return load_settings(config_path)
