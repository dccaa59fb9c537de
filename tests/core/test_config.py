"""Tests for configuration loading and validation."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from drivesync.core.config import (
    ConfigError,
    SyncConfig,
    get_config_file,
    get_user_config_dir,
    load_config,
    save_config,
)


@pytest.fixture
def config_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point user and system config locations into tmp_path."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setattr("drivesync.core.config.SYSTEM_CONFIG_ROOT", tmp_path / "etc")
    monkeypatch.setattr("drivesync.core.config.os.geteuid", lambda: 1000, raising=False)
    return tmp_path


class TestSyncConfig:
    """Tests for SyncConfig class."""

    def test_defaults(self) -> None:
        """Should default to the archive/Uncategorized layout with verification on."""
        config = SyncConfig()

        assert config.archive_root == "archive"
        assert config.default_category == "Uncategorized"
        assert config.force_recheck is True
        assert config.create_missing is False
        assert config.retry_starting_rate == 1.0
        assert config.retry_ratio == 2.0
        assert config.retry_max_attempts is None
        assert config.max_workers == 16
        assert config.target is None

    def test_from_dict_kebab_keys(self, tmp_path: Path) -> None:
        """Config file keys should map onto fields."""
        config = SyncConfig.from_dict({
            "archive-root": "backup",
            "default-category": "Inbox",
            "force-recheck": False,
            "retry-starting-rate": 2,
            "retry-ratio": 1.5,
            "max-workers": 4,
            "target": str(tmp_path / "watched"),
            "guess-extensions": {"pdf": "Documents"},
        })

        assert config.archive_root == "backup"
        assert config.default_category == "Inbox"
        assert config.force_recheck is False
        assert config.retry_starting_rate == 2.0
        assert config.retry_ratio == 1.5
        assert config.max_workers == 4
        assert config.target == (tmp_path / "watched").resolve()
        assert config.guess_extensions == {"pdf": "Documents"}

    def test_target_is_expanded(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """A ~ in the target should be expanded."""
        monkeypatch.setenv("HOME", str(tmp_path))

        config = SyncConfig.from_dict({"target": "~/inbox"})

        assert config.target == (tmp_path / "inbox").resolve()

    def test_unknown_keys_round_trip(self) -> None:
        """Unknown keys should be kept so saving does not drop them."""
        config = SyncConfig.from_dict({"archive-root": "a", "future-option": 1})

        assert config.to_dict()["future-option"] == 1
        assert config.to_dict()["archive-root"] == "a"

    @pytest.mark.parametrize(
        ("key", "value"),
        [
            ("force-recheck", "yes"),
            ("retry-ratio", "2"),
            ("retry-ratio", True),
            ("max-workers", 2.5),
            ("archive-root", 3),
            ("guess-extensions", ["pdf"]),
        ],
    )
    def test_wrong_types(self, key: str, value: object) -> None:
        """Values of the wrong JSON type should be rejected."""
        with pytest.raises(ConfigError, match=key):
            SyncConfig.from_dict({key: value})

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"archive_root": ""},
            {"default_category": ""},
            {"retry_starting_rate": 0},
            {"retry_ratio": 0.5},
            {"retry_max_attempts": 0},
            {"max_workers": 0},
        ],
    )
    def test_validation(self, kwargs: dict[str, object]) -> None:
        """Out of range values should be rejected."""
        with pytest.raises(ConfigError):
            SyncConfig(**kwargs)  # type: ignore[arg-type]


class TestConfigFile:
    """Tests for config file discovery, loading and saving."""

    def test_user_dir_from_xdg(self, config_home: Path) -> None:
        """XDG_CONFIG_HOME should be honored."""
        assert get_user_config_dir() == config_home / "xdg" / "drivesync"

    def test_user_dir_default(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Without XDG_CONFIG_HOME, ~/.config should be used."""
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))

        assert get_user_config_dir() == tmp_path / ".config" / "drivesync"

    def test_discovery_prefers_user_file(self, config_home: Path) -> None:
        """The user file should win over the system one."""
        system = save_config(SyncConfig(), config_home / "etc" / "drivesync" / "config.json")
        assert get_config_file() == system

        user = save_config(SyncConfig(), config_home / "xdg" / "drivesync" / "config.json")
        assert get_config_file() == user

    def test_missing_file_defaults(self, config_home: Path) -> None:
        """A missing file should give defaults without writing anything."""
        config = load_config()

        assert config == SyncConfig()
        assert not get_config_file().exists()

    def test_missing_file_created(self, config_home: Path) -> None:
        """create=True should write a default file to the user location."""
        load_config(create=True)

        path = config_home / "xdg" / "drivesync" / "config.json"
        data = json.loads(path.read_text())
        assert data["archive-root"] == "archive"
        assert data["force-recheck"] is True

    def test_save_and_load(self, tmp_path: Path) -> None:
        """A saved config should load back identically."""
        path = tmp_path / "config.json"
        config = SyncConfig(archive_root="backup", max_workers=2, token_path=tmp_path / "t.json")

        save_config(config, path)

        assert load_config(path) == config

    def test_invalid_json(self, tmp_path: Path) -> None:
        """A corrupt file should raise ConfigError."""
        path = tmp_path / "config.json"
        path.write_text("{not json")

        with pytest.raises(ConfigError, match="Failed to read"):
            load_config(path)

    def test_not_an_object(self, tmp_path: Path) -> None:
        """The top level must be a JSON object."""
        path = tmp_path / "config.json"
        path.write_text("[]")

        with pytest.raises(ConfigError, match="JSON object"):
            load_config(path)
