from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, ValidationError

from dmypyls.daemon import LifecyclePolicy
from dmypyls.exceptions import ConfigError

logger = logging.getLogger(__name__)

APP_NAME = "dmypyls"
DEFAULT_CONFIG_NAME = f"{APP_NAME}.yaml"


class PythonEnvKind(Enum):
    USE_PATH = "use-path"
    PIPENV = "pipenv"
    PDM = "pdm"
    POETRY = "poetry"
    INTERPRETER = "interpreter"


@dataclass(frozen=True)
class PythonEnvironment:
    kind: PythonEnvKind
    interpreter: str | None = None

    @classmethod
    def parse(cls, value: str) -> PythonEnvironment:
        text = value.strip()
        for kind in PythonEnvKind:
            if kind is not PythonEnvKind.INTERPRETER and text == kind.value:
                return cls(kind)
        return cls(PythonEnvKind.INTERPRETER, interpreter=text)

    def dmypy_command(self) -> tuple[str, ...]:
        if self.kind is PythonEnvKind.USE_PATH:
            return ("dmypy",)
        if self.kind is PythonEnvKind.INTERPRETER:
            return (str(self.interpreter), "-m", "mypy.dmypy")
        return (self.kind.value, "run", "dmypy")


class DmypylsConfig(BaseModel):
    dmypy_command: list[str] | None = None
    python_env: str | None = None
    daemon_lifecycle: LifecyclePolicy = LifecyclePolicy.PROBE
    log_level: str | None = None

    def command_template(self) -> tuple[str, ...]:
        if self.dmypy_command is not None:
            return tuple(self.dmypy_command)
        if self.python_env is not None:
            return PythonEnvironment.parse(self.python_env).dmypy_command()
        return ()


def parse_config(content: str) -> DmypylsConfig:
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ConfigError(f"yaml error: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"configuration must be a mapping, got {type(data).__name__}")
    try:
        return DmypylsConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration: {exc}") from exc


def read_config_from_file(path: Path) -> DmypylsConfig | None:
    logger.info("attempting to read configuration from %s", path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.info("configuration from %s could not be read.", path)
        return None
    try:
        config = parse_config(content)
    except ConfigError as exc:
        logger.error("failed to parse configuration %s: %s", path, exc)
        return None
    logger.info("configuration from %s successfully read.", path)
    return config


def user_config_dir() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME", "").strip()
    return (Path(base) if base else Path.home() / ".config") / APP_NAME


def user_state_dir() -> Path:
    base = os.environ.get("XDG_STATE_HOME", "").strip()
    return (Path(base) if base else Path.home() / ".local" / "state") / APP_NAME


def read_config(
    project_dir: Path | None = None,
    config_path: Path | None = None,
    user_dir: Path | None = None,
) -> DmypylsConfig:
    """Project-level configuration if present, else user-level. Never merged."""
    if config_path is not None:
        config = read_config_from_file(config_path)
        if config is None:
            raise ConfigError(f"No configuration found at {config_path}")
        return config
    base = project_dir if project_dir is not None else Path.cwd()
    config = read_config_from_file(base / DEFAULT_CONFIG_NAME)
    if config is not None:
        logger.info("[read_config] project-level configuration read.")
        return config
    user_base = user_dir if user_dir is not None else user_config_dir()
    config = read_config_from_file(user_base / DEFAULT_CONFIG_NAME)
    if config is not None:
        logger.info("[read_config] user-level configuration read.")
        return config
    raise ConfigError("No configuration found")
