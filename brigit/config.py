"""Tool settings resolved from flags, environment, and a settings file."""

from __future__ import annotations

import dataclasses
import os
import typing as typ
from pathlib import Path

from cyclopts import config as cyclopts_config
from ruamel.yaml import YAML

from .errors import BrigitError
from .github import DEFAULT_API_URL, DEFAULT_TIMEOUT
from .reconcile import DEFAULT_BRANCH

ENV_TOKEN = "GITHUB_TOKEN"  # noqa: S105 - environment variable name
ENV_API_URL = "GITHUB_API_URL"
ENV_POLICY_PATH = "BRIGIT_CONFIG"
ENV_IGNORE_PATH = "BRIGIT_IGNORE_FILE"
ENV_SETTINGS_PATH = "BRIGIT_SETTINGS"
POLICY_FILENAME = "ghbranchprotection.json"
IGNORE_FILENAME = "repos-ignore.txt"
SETTINGS_FILENAME = "config.yaml"
DEFAULT_WORKERS = 1

_yaml = YAML(typ="safe")


class SettingsError(BrigitError):
    """Raised when the settings file holds an unusable value."""

    def __init__(self, key: str, detail: str) -> None:
        """Initialise the error with the offending key."""
        super().__init__(f"Invalid setting {key!r}: {detail}")


class _YamlConfig(cyclopts_config.ConfigFromFile):
    """Cyclopts config provider backed by ruamel.yaml."""

    def _load_config(self, path: Path) -> dict[str, typ.Any]:
        if not path.exists():
            return {}
        with path.open("r", encoding="utf-8") as handle:
            contents = _yaml.load(handle) or {}
        return dict(contents) if isinstance(contents, dict) else {}


@dataclasses.dataclass(frozen=True, slots=True)
class Settings:
    """Fully resolved settings for one run."""

    token: str | None
    api_url: str = DEFAULT_API_URL
    policy_path: Path = Path(POLICY_FILENAME)
    ignore_path: Path | None = None
    branch: str = DEFAULT_BRANCH
    workers: int = DEFAULT_WORKERS
    timeout: int = DEFAULT_TIMEOUT


def config_home(env: typ.Mapping[str, str] | None = None) -> Path:
    """Return the brigit directory under XDG_CONFIG_HOME."""
    environ = os.environ if env is None else env
    root = environ.get("XDG_CONFIG_HOME")
    base = Path(root).expanduser() if root else Path.home() / ".config"
    return base / "brigit"


def default_settings_path(env: typ.Mapping[str, str] | None = None) -> Path:
    """Return the path to the brigit settings file."""
    environ = os.environ if env is None else env
    if explicit := environ.get(ENV_SETTINGS_PATH):
        return Path(explicit).expanduser()
    return config_home(environ) / SETTINGS_FILENAME


def load_settings_file(path: Path) -> dict[str, typ.Any]:
    """Load the optional settings file; a missing file yields no settings."""
    provider = _YamlConfig(path=str(path), must_exist=False)
    raw = provider.config or {}
    return dict(raw) if isinstance(raw, dict) else {}


def _positive_int(key: str, value: object) -> int:
    if isinstance(value, bool):
        raise SettingsError(key, "expected a positive integer")
    try:
        number = int(str(value))
    except (TypeError, ValueError) as error:
        raise SettingsError(key, "expected a positive integer") from error
    if number < 1:
        raise SettingsError(key, "expected a positive integer")
    return number


def _first_set(*candidates: object) -> object:
    return next((value for value in candidates if value is not None), None)


def _first_path(*candidates: object) -> Path | None:
    for candidate in candidates:
        if candidate:
            return Path(str(candidate)).expanduser()
    return None


def resolve_policy_path(
    explicit: Path | None,
    *,
    env: typ.Mapping[str, str],
    file_settings: typ.Mapping[str, typ.Any],
    cwd: Path,
) -> Path:
    """Pick the policy document: flag, env, settings, cwd, then XDG."""
    if chosen := _first_path(
        explicit, env.get(ENV_POLICY_PATH), file_settings.get("config")
    ):
        return chosen
    local = cwd / POLICY_FILENAME
    if local.is_file():
        return local
    shared = config_home(env) / POLICY_FILENAME
    if shared.is_file():
        return shared
    return local


def resolve_ignore_path(
    explicit: Path | None,
    *,
    env: typ.Mapping[str, str],
    file_settings: typ.Mapping[str, typ.Any],
    cwd: Path,
) -> Path:
    """Pick the ignore list: flag, env, settings, then the cwd default."""
    return _first_path(
        explicit, env.get(ENV_IGNORE_PATH), file_settings.get("ignore_file")
    ) or (cwd / IGNORE_FILENAME)


def resolve_settings(  # noqa: PLR0913
    *,
    token: str | None = None,
    api_url: str | None = None,
    config: Path | None = None,
    ignore_file: Path | None = None,
    branch: str | None = None,
    workers: int | None = None,
    timeout: int | None = None,
    env: typ.Mapping[str, str] | None = None,
    settings_path: Path | None = None,
    cwd: Path | None = None,
) -> Settings:
    """Merge explicit values over environment, settings file, and defaults."""
    environ = os.environ if env is None else env
    working_dir = cwd or Path.cwd()
    file_settings = load_settings_file(settings_path or default_settings_path(environ))
    resolved_workers = _first_set(
        workers, file_settings.get("workers"), DEFAULT_WORKERS
    )
    resolved_timeout = _first_set(
        timeout, file_settings.get("timeout"), DEFAULT_TIMEOUT
    )
    return Settings(
        token=token or environ.get(ENV_TOKEN),
        api_url=(
            api_url
            or environ.get(ENV_API_URL)
            or str(file_settings.get("api_url") or DEFAULT_API_URL)
        ),
        policy_path=resolve_policy_path(
            config, env=environ, file_settings=file_settings, cwd=working_dir
        ),
        ignore_path=resolve_ignore_path(
            ignore_file, env=environ, file_settings=file_settings, cwd=working_dir
        ),
        branch=branch or str(file_settings.get("branch") or DEFAULT_BRANCH),
        workers=_positive_int("workers", resolved_workers),
        timeout=_positive_int("timeout", resolved_timeout),
    )
