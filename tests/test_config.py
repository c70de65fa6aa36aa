import pytest

from wa_recall.config import loader
from wa_recall.config.antidelete import AntiDelete
from wa_recall.config.core import Core


def test_toml_values_override_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("ANTI_DELETE_PATH", "same")
    path = tmp_path / "config.toml"
    path.write_text(
        """
[wa_recall]
prefix = "!"
owner_number = "50955555555"

[wa_recall.antidelete]
enabled = false
path = "Owner"
ttl_minutes = 10
"""
    )

    raw = loader.load_raw_config(path)
    core = Core(raw)
    settings = AntiDelete(raw)

    assert core.PREFIX == "!"
    assert core.OWNER_JID == "50955555555@s.whatsapp.net"
    assert settings.ENABLED is False
    assert settings.PATH == "owner"
    assert settings.TTL_MS == 10 * 60 * 1000
    assert settings.MAX_ENTRIES == 1000


def test_environment_defaults(monkeypatch):
    monkeypatch.setenv("ANTI_DELETE", "false")
    monkeypatch.delenv("ANTI_DELETE_PATH", raising=False)

    settings = AntiDelete({})

    assert settings.ENABLED is False
    assert settings.PATH == "inbox"
    assert settings.TTL_MINUTES == 30
    assert settings.SWEEP_BATCH == 100


def test_missing_owner_is_rejected(monkeypatch):
    monkeypatch.delenv("OWNER_NUMBER", raising=False)

    with pytest.raises(ValueError, match="OWNER_NUMBER"):
        Core({})


def test_missing_config_file_yields_empty(tmp_path):
    assert loader.load_raw_config(tmp_path / "absent.toml") == {}
