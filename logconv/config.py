# logconv/config.py
from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .assemble import DEFAULT_MAX_SIZE, MIN_MAX_SIZE
from .context import ContextStore
from .severity import Severity

_log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Env helpers
# ---------------------------------------------------------------------------


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    v = raw.strip().lower()
    return v in ("1", "true", "yes", "on")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except Exception:
        return default


def _env_list(name: str) -> List[str]:
    raw = os.environ.get(name, "")
    return [p.strip() for p in raw.split(",") if p.strip()]


def _load_yaml_mapping(path: str) -> Dict[str, Any]:
    """
    Load a top-level mapping from YAML.

    Missing files and documents that are not mappings yield an empty dict;
    parse errors are logged and ignored.
    """
    if not path:
        return {}
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            doc = yaml.safe_load(f)
    except Exception:
        _log.warning("failed to load YAML config from %s", path, exc_info=True)
        return {}
    if not isinstance(doc, dict):
        return {}
    return {str(k): v for k, v in doc.items()}


# ---------------------------------------------------------------------------
# Sink options
# ---------------------------------------------------------------------------


class _Options(BaseModel):
    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)


class _LevelOptions(_Options):
    level: str = "info"

    @field_validator("level", mode="before")
    @classmethod
    def _check_level(cls, v: Any) -> str:
        return Severity.parse(v).label


class SinkOptions(_LevelOptions):
    # 1 = stdout, 2 = stderr, a file path, or a writable stream
    destination: Any = 1


class HumanSinkOptions(SinkOptions):
    colorize: bool = True


class TestSinkOptions(_LevelOptions):
    pass


class RedactOptions(_Options):
    paths: List[str] = Field(default_factory=list)


class LoggerConfig(_Options):
    """
    Initialization options.

    ``machine`` / ``human`` / ``test`` accept True (defaults) or an options
    object / mapping. ``sync`` is forced on when the test sink is enabled.
    """

    # Not a parent of the package's own module loggers.
    name: str = "logconv.records"
    machine: Union[bool, SinkOptions] = False
    human: Union[bool, HumanSinkOptions] = False
    test: Union[bool, TestSinkOptions] = False
    ambient_context_store: Optional[ContextStore] = None
    max_size: Optional[int] = DEFAULT_MAX_SIZE
    sync: bool = False
    redact: RedactOptions = Field(default_factory=RedactOptions)

    @field_validator("max_size")
    @classmethod
    def _check_max_size(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < MIN_MAX_SIZE:
            raise ValueError(f"max_size must be at least {MIN_MAX_SIZE} bytes")
        return v

    @field_validator("redact", mode="before")
    @classmethod
    def _coerce_redact(cls, v: Any) -> Any:
        # Shorthand: a bare list of paths.
        if isinstance(v, (list, tuple)):
            return {"paths": list(v)}
        return v

    @property
    def effective_sync(self) -> bool:
        return bool(self.sync or self.test)

    def machine_options(self) -> Optional[SinkOptions]:
        if self.machine is True:
            return SinkOptions()
        return self.machine or None

    def human_options(self) -> Optional[HumanSinkOptions]:
        if self.human is True:
            return HumanSinkOptions()
        return self.human or None

    def test_options(self) -> Optional[TestSinkOptions]:
        if self.test is True:
            return TestSinkOptions()
        return self.test or None


# ---------------------------------------------------------------------------
# Loading / merging
# ---------------------------------------------------------------------------


def load_config(**overrides: Any) -> LoggerConfig:
    """
    Build a LoggerConfig from defaults, an optional YAML file and the
    environment, with keyword overrides applied last.

    Priority:
      1. defaults (machine sink on stdout);
      2. YAML mapping at LOGCONV_CONFIG_PATH;
      3. LOGCONV_* environment variables;
      4. keyword overrides.
    """
    merged: Dict[str, Any] = {"machine": True}

    yaml_path = os.environ.get("LOGCONV_CONFIG_PATH", "").strip()
    yaml_doc = _load_yaml_mapping(yaml_path)
    if yaml_doc:
        merged.update(yaml_doc)

    merged["machine"] = _env_bool("LOGCONV_MACHINE", bool(merged.get("machine")))
    if merged["machine"] and isinstance(yaml_doc.get("machine"), dict):
        merged["machine"] = dict(yaml_doc["machine"])
    merged["human"] = _env_bool("LOGCONV_HUMAN", bool(merged.get("human")))
    if merged["human"] and isinstance(yaml_doc.get("human"), dict):
        merged["human"] = dict(yaml_doc["human"])

    level = os.environ.get("LOGCONV_LEVEL", "").strip()
    if level:
        try:
            level = Severity.parse(level).label
        except ValueError:
            _log.warning("ignoring invalid LOGCONV_LEVEL=%r", level)
            level = ""
    if level:
        for key in ("machine", "human"):
            if merged.get(key) is True:
                merged[key] = {"level": level}
            elif isinstance(merged.get(key), dict):
                merged[key] = dict(merged[key], level=level)

    max_size = _env_int("LOGCONV_MAX_SIZE", merged.get("max_size", DEFAULT_MAX_SIZE))
    if max_size is not None and max_size >= MIN_MAX_SIZE:
        merged["max_size"] = max_size

    merged["sync"] = _env_bool("LOGCONV_SYNC", bool(merged.get("sync", False)))

    env_paths = _env_list("LOGCONV_REDACT")
    if env_paths:
        redact = merged.get("redact") or {}
        if isinstance(redact, (list, tuple)):
            redact = {"paths": list(redact)}
        paths = list(redact.get("paths") or []) + env_paths
        merged["redact"] = dict(redact, paths=paths)

    merged.update(overrides)
    return LoggerConfig(**merged)


__all__ = [
    "SinkOptions",
    "HumanSinkOptions",
    "TestSinkOptions",
    "RedactOptions",
    "LoggerConfig",
    "load_config",
]
