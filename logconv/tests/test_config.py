# logconv/tests/test_config.py
import pytest
from pydantic import ValidationError

from logconv.config import LoggerConfig, load_config

_ENV = (
    "LOGCONV_CONFIG_PATH",
    "LOGCONV_MACHINE",
    "LOGCONV_HUMAN",
    "LOGCONV_LEVEL",
    "LOGCONV_MAX_SIZE",
    "LOGCONV_SYNC",
    "LOGCONV_REDACT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    cfg = LoggerConfig()
    assert cfg.machine is False
    assert cfg.max_size == 10_000
    assert cfg.redact.paths == []
    assert not cfg.effective_sync


def test_test_sink_forces_sync():
    assert LoggerConfig(test=True).effective_sync


def test_option_shorthands():
    cfg = LoggerConfig(machine=True, human={"level": "warning"}, redact=["a.b"])
    assert cfg.machine_options().destination == 1
    assert cfg.human_options().level == "warn"
    assert cfg.human_options().colorize is True
    assert cfg.test_options() is None
    assert cfg.redact.paths == ["a.b"]


def test_invalid_values_are_rejected():
    with pytest.raises(ValidationError):
        LoggerConfig(max_size=0)
    with pytest.raises(ValidationError):
        LoggerConfig(max_size=10)
    with pytest.raises(ValidationError):
        LoggerConfig(machine={"level": "loud"})
    with pytest.raises(ValidationError):
        LoggerConfig(colour=True)


def test_load_config_defaults_to_machine_sink():
    cfg = load_config()
    assert cfg.machine_options() is not None
    assert cfg.human_options() is None


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("LOGCONV_HUMAN", "1")
    monkeypatch.setenv("LOGCONV_MACHINE", "false")
    monkeypatch.setenv("LOGCONV_LEVEL", "debug")
    monkeypatch.setenv("LOGCONV_MAX_SIZE", "2048")
    monkeypatch.setenv("LOGCONV_SYNC", "yes")
    monkeypatch.setenv("LOGCONV_REDACT", "token, card.number")
    cfg = load_config()
    assert cfg.machine_options() is None
    assert cfg.human_options().level == "debug"
    assert cfg.max_size == 2048
    assert cfg.sync is True
    assert cfg.redact.paths == ["token", "card.number"]


def test_invalid_env_values_are_ignored(monkeypatch):
    monkeypatch.setenv("LOGCONV_LEVEL", "loud")
    monkeypatch.setenv("LOGCONV_MAX_SIZE", "lots")
    cfg = load_config()
    assert cfg.machine_options().level == "info"
    assert cfg.max_size == 10_000


def test_yaml_file(monkeypatch, tmp_path):
    path = tmp_path / "logconv.yaml"
    path.write_text(
        "machine:\n"
        "  level: warn\n"
        "  destination: 2\n"
        "max_size: 4096\n"
        "redact:\n"
        "  - secret\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("LOGCONV_CONFIG_PATH", str(path))
    monkeypatch.setenv("LOGCONV_REDACT", "token")
    cfg = load_config()
    assert cfg.machine_options().level == "warn"
    assert cfg.machine_options().destination == 2
    assert cfg.max_size == 4096
    assert cfg.redact.paths == ["secret", "token"]


def test_missing_or_broken_yaml_is_ignored(monkeypatch, tmp_path):
    monkeypatch.setenv("LOGCONV_CONFIG_PATH", str(tmp_path / "missing.yaml"))
    assert load_config().max_size == 10_000
    broken = tmp_path / "broken.yaml"
    broken.write_text("machine: [unclosed\n", encoding="utf-8")
    monkeypatch.setenv("LOGCONV_CONFIG_PATH", str(broken))
    assert load_config().machine_options() is not None


def test_keyword_overrides_win(monkeypatch):
    monkeypatch.setenv("LOGCONV_SYNC", "1")
    cfg = load_config(sync=False, name="svc")
    assert cfg.sync is False
    assert cfg.name == "svc"
