"""Engine configuration loader.

Loads settings from ~/.rose/config.json and applies environment variable
overrides on top, so a deployment can keep secrets in the environment (or a
.env file loaded by the entry point) and everything else in JSON.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".rose" / "config.json"
DEFAULT_MODEL = "llama-3.1-70b-versatile"


@dataclass
class RoseConfig:
    """Configuration for the chat engine.

    Attributes:
        api_key: Groq API key. Empty means every reply uses the fallback text.
        model: Model identifier passed to the text-generation call.
        max_tokens: Maximum output length for generated replies.
        temperature: Sampling temperature for generated replies.
        request_timeout: Seconds before a generation call is abandoned.
        history_limit: Prior exchanges included in standard-mode prompts.
        identity_cache_ttl: Seconds an identity stays cached.
        identity_prune_interval: Seconds between background identity cache prunes.
        menu_timeout: Seconds of inactivity before a menu context expires.
        menu_cleanup_interval: Seconds between background menu sweeps.
        max_menu_contexts: Upper bound on live menu contexts.
        privileged_keys: Identity keys treated as privileged on first contact.
        endearments: Terms that mark a privileged reply as flirtatious.
        menu_structure: Raw menu tree (JSON string or mapping), None for default.
        db_path: SQLite database file.
        log_dir: Directory for the JSONL event log.
        retention_days: Age after which exchanges are swept.
    """

    api_key: str = ""
    model: str = DEFAULT_MODEL
    max_tokens: int = 150
    temperature: float = 0.7
    request_timeout: float = 20.0
    history_limit: int = 10
    identity_cache_ttl: float = 300
    identity_prune_interval: float = 60
    menu_timeout: float = 300
    menu_cleanup_interval: float = 60
    max_menu_contexts: int = 10_000
    privileged_keys: list[str] = field(default_factory=list)
    endearments: list[str] = field(default_factory=lambda: ["darling"])
    menu_structure: str | dict[str, Any] | None = None
    db_path: Path | None = None
    log_dir: Path | None = None
    retention_days: int = 30

    def __post_init__(self) -> None:
        """Validate config and set defaults."""
        if self.db_path is None:
            self.db_path = Path.home() / ".rose" / "rose.db"

        if self.log_dir is None:
            self.log_dir = Path.home() / ".rose" / "logs"

        self.validate()

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ValueError: If a limit is out of range.
        """
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be at least 1")
        if self.history_limit < 0:
            raise ValueError("history_limit cannot be negative")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.max_menu_contexts < 1:
            raise ValueError("max_menu_contexts must be at least 1")
        if self.menu_cleanup_interval <= 0 or self.identity_prune_interval <= 0:
            raise ValueError("cleanup intervals must be positive")

    def is_privileged_key(self, key: str) -> bool:
        """Check if a key is in the privileged allowlist."""
        return key in self.privileged_keys


# JSON key -> (attribute, accepted types)
_FIELDS: dict[str, tuple[str, tuple[type, ...]]] = {
    "model": ("model", (str,)),
    "max_tokens": ("max_tokens", (int,)),
    "temperature": ("temperature", (int, float)),
    "request_timeout": ("request_timeout", (int, float)),
    "history_limit": ("history_limit", (int,)),
    "identity_cache_ttl": ("identity_cache_ttl", (int, float)),
    "identity_prune_interval": ("identity_prune_interval", (int, float)),
    "menu_timeout": ("menu_timeout", (int, float)),
    "menu_cleanup_interval": ("menu_cleanup_interval", (int, float)),
    "max_menu_contexts": ("max_menu_contexts", (int,)),
    "retention_days": ("retention_days", (int,)),
}


def load_config(config_path: Path | None = None) -> RoseConfig:
    """Load RoseConfig from a JSON file, then apply environment overrides.

    The config file should have this structure:
    ```json
    {
      "model": "llama-3.1-70b-versatile",
      "max_tokens": 150,
      "history_limit": 10,
      "privileged_keys": ["<avatar-key>"],
      "menu": {"categories": {"Snacks": {"items": ["Cookies"]}}}
    }
    ```

    Args:
        config_path: Path to config file. Uses DEFAULT_CONFIG_PATH if None.

    Returns:
        RoseConfig instance with loaded values.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    data: dict[str, Any] = {}

    if not path.exists():
        logger.debug("No config file at %s, using defaults", path)
    else:
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("Invalid JSON in %s: %s. Using defaults.", path, e)
        except OSError as e:
            logger.warning("Cannot read %s: %s. Using defaults.", path, e)
        else:
            if isinstance(loaded, dict):
                data = loaded
            else:
                logger.warning("Config in %s is not an object. Using defaults.", path)

    config = _parse_config(data)
    apply_env(config)
    return config


def _parse_config(data: dict[str, Any]) -> RoseConfig:
    """Parse a config dictionary into RoseConfig, skipping bad values."""
    kwargs: dict[str, Any] = {}

    for key, (attr, types) in _FIELDS.items():
        value = data.get(key)
        if value is None:
            continue
        # bool is an int subclass
        if isinstance(value, bool) or not isinstance(value, types):
            logger.warning("Ignoring config value %s=%r", key, value)
            continue
        kwargs[attr] = value

    privileged = data.get("privileged_keys", [])
    if isinstance(privileged, list):
        kwargs["privileged_keys"] = [str(k) for k in privileged if str(k).strip()]

    endearments = data.get("endearments")
    if isinstance(endearments, list):
        kwargs["endearments"] = [str(term).lower() for term in endearments]

    menu = data.get("menu")
    if isinstance(menu, (str, dict)):
        kwargs["menu_structure"] = menu

    for key in ("db_path", "log_dir"):
        value = data.get(key)
        if isinstance(value, str) and value:
            kwargs[key] = Path(value).expanduser()

    try:
        return RoseConfig(**kwargs)
    except ValueError as e:
        logger.warning("Invalid config: %s. Using defaults.", e)
        return RoseConfig()


# env var -> (attribute, parser)
_NUMERIC_ENV: tuple[tuple[str, str, type], ...] = (
    ("ROSE_MAX_TOKENS", "max_tokens", int),
    ("ROSE_TEMPERATURE", "temperature", float),
    ("ROSE_HISTORY_LIMIT", "history_limit", int),
)


def apply_env(config: RoseConfig) -> RoseConfig:
    """Override config fields from environment variables."""
    config.api_key = os.getenv("GROQ_API_KEY", config.api_key) or ""
    config.model = os.getenv("GROQ_MODEL", config.model)

    for name, attr, cast in _NUMERIC_ENV:
        raw = os.getenv(name)
        if not raw:
            continue
        previous = getattr(config, attr)
        try:
            setattr(config, attr, cast(raw))
            config.validate()
        except ValueError as e:
            logger.warning("Ignoring %s=%r: %s", name, raw, e)
            setattr(config, attr, previous)

    privileged = os.getenv("ROSE_PRIVILEGED_KEYS")
    if privileged:
        config.privileged_keys = [k.strip() for k in privileged.split(",") if k.strip()]

    menu = os.getenv("ROSE_MENU_STRUCTURE")
    if menu:
        config.menu_structure = menu

    db_path = os.getenv("ROSE_DB_PATH")
    if db_path:
        config.db_path = Path(db_path).expanduser()

    return config
