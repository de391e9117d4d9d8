"""Tests for engine configuration loading."""

import json
from pathlib import Path

import pytest

from rose.config import RoseConfig, apply_env, load_config

ENV_VARS = (
    "GROQ_API_KEY",
    "GROQ_MODEL",
    "ROSE_MAX_TOKENS",
    "ROSE_TEMPERATURE",
    "ROSE_HISTORY_LIMIT",
    "ROSE_PRIVILEGED_KEYS",
    "ROSE_MENU_STRUCTURE",
    "ROSE_DB_PATH",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def write_config(tmp_path: Path, data) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data))
    return path


class TestRoseConfig:
    """Tests for RoseConfig dataclass."""

    def test_default_values(self) -> None:
        """Should have sensible defaults."""
        config = RoseConfig()

        assert config.api_key == ""
        assert config.max_tokens == 150
        assert config.temperature == 0.7
        assert config.history_limit == 10
        assert config.identity_cache_ttl == 300
        assert config.menu_timeout == 300
        assert config.endearments == ["darling"]
        assert config.db_path == Path.home() / ".rose" / "rose.db"

    def test_invalid_max_tokens(self) -> None:
        with pytest.raises(ValueError, match="at least 1"):
            RoseConfig(max_tokens=0)

    def test_invalid_history_limit(self) -> None:
        with pytest.raises(ValueError, match="negative"):
            RoseConfig(history_limit=-1)

    def test_is_privileged_key(self) -> None:
        config = RoseConfig(privileged_keys=["owner-1"])

        assert config.is_privileged_key("owner-1")
        assert not config.is_privileged_key("visitor-1")


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file(self, tmp_path: Path) -> None:
        """Should return defaults when the file does not exist."""
        config = load_config(tmp_path / "missing.json")
        assert config.model == RoseConfig().model

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{broken")

        assert load_config(path).max_tokens == 150

    def test_not_an_object(self, tmp_path: Path) -> None:
        assert load_config(write_config(tmp_path, ["nope"])).history_limit == 10

    def test_values_from_file(self, tmp_path: Path) -> None:
        path = write_config(
            tmp_path,
            {
                "model": "other-model",
                "max_tokens": 200,
                "temperature": 0.5,
                "history_limit": 4,
                "privileged_keys": ["owner-1", ""],
                "endearments": ["Sweetheart"],
                "menu": {"categories": {"Snacks": {"items": ["Cookies"]}}},
                "db_path": str(tmp_path / "rose.db"),
            },
        )

        config = load_config(path)

        assert config.model == "other-model"
        assert config.max_tokens == 200
        assert config.temperature == 0.5
        assert config.history_limit == 4
        assert config.privileged_keys == ["owner-1"]
        assert config.endearments == ["sweetheart"]
        assert config.menu_structure == {"categories": {"Snacks": {"items": ["Cookies"]}}}
        assert config.db_path == tmp_path / "rose.db"

    def test_wrong_types_are_ignored(self, tmp_path: Path) -> None:
        config = load_config(write_config(tmp_path, {"max_tokens": "lots", "history_limit": True}))

        assert config.max_tokens == 150
        assert config.history_limit == 10

    def test_invalid_values_fall_back_to_defaults(self, tmp_path: Path) -> None:
        config = load_config(write_config(tmp_path, {"max_tokens": 0, "model": "x"}))

        assert config.max_tokens == 150
        assert config.model == RoseConfig().model


class TestApplyEnv:
    """Tests for environment overrides."""

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GROQ_API_KEY", "secret")
        monkeypatch.setenv("GROQ_MODEL", "env-model")
        monkeypatch.setenv("ROSE_HISTORY_LIMIT", "3")
        monkeypatch.setenv("ROSE_PRIVILEGED_KEYS", "owner-1, owner-2,,")

        config = load_config(write_config(tmp_path, {"model": "file-model", "history_limit": 8}))

        assert config.api_key == "secret"
        assert config.model == "env-model"
        assert config.history_limit == 3
        assert config.privileged_keys == ["owner-1", "owner-2"]

    def test_numeric_and_path_overrides(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ROSE_MAX_TOKENS", "99")
        monkeypatch.setenv("ROSE_TEMPERATURE", "0.2")
        monkeypatch.setenv("ROSE_DB_PATH", str(tmp_path / "env.db"))
        monkeypatch.setenv("ROSE_MENU_STRUCTURE", '{"categories": {}}')

        config = apply_env(RoseConfig())

        assert config.max_tokens == 99
        assert config.temperature == 0.2
        assert config.db_path == tmp_path / "env.db"
        assert config.menu_structure == '{"categories": {}}'

    def test_unset_env_keeps_values(self) -> None:
        config = apply_env(RoseConfig(model="kept", history_limit=2))

        assert config.model == "kept"
        assert config.history_limit == 2
        assert config.api_key == ""

    def test_malformed_numbers_are_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ROSE_MAX_TOKENS", "lots")
        monkeypatch.setenv("ROSE_TEMPERATURE", "warm")
        monkeypatch.setenv("ROSE_HISTORY_LIMIT", "4.5")

        config = apply_env(RoseConfig(max_tokens=120))

        assert config.max_tokens == 120
        assert config.temperature == 0.7
        assert config.history_limit == 10

    def test_out_of_range_values_are_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ROSE_MAX_TOKENS", "0")
        monkeypatch.setenv("ROSE_HISTORY_LIMIT", "-2")

        config = apply_env(RoseConfig())

        assert config.max_tokens == 150
        assert config.history_limit == 10

    def test_invalid_cleanup_interval(self) -> None:
        with pytest.raises(ValueError, match="intervals"):
            RoseConfig(identity_prune_interval=0)
