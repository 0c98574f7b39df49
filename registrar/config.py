"""Configuration management for the course registration service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from datetime import timedelta
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

ENROLLMENT_STRATEGIES = ("atomic", "sequential")

DEFAULT_PORT = 3000
DEFAULT_SESSION_TTL_HOURS = 24
SESSION_COOKIE_NAME = "registrar_session"


def _env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _flag(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return _env_flag(value, default)
    return bool(value)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "registrar.sqlite3").resolve(strict=False)


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, built once at startup and passed to each component."""

    database_path: Path
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    session_ttl: timedelta = timedelta(hours=DEFAULT_SESSION_TTL_HOURS)
    session_cookie_name: str = SESSION_COOKIE_NAME
    session_cookie_secure: bool = False
    enrollment_strategy: str = "atomic"
    allow_duplicate_enrollment: bool = True

    def __post_init__(self) -> None:
        if self.enrollment_strategy not in ENROLLMENT_STRATEGIES:
            raise ValueError(
                f"Unknown enrollment strategy '{self.enrollment_strategy}'; "
                f"expected one of: {', '.join(ENROLLMENT_STRATEGIES)}"
            )
        if self.session_ttl <= timedelta(0):
            raise ValueError("Session lifetime must be positive")
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port {self.port}")

    @property
    def cookie_max_age(self) -> int:
        return int(self.session_ttl.total_seconds())

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw dictionary data, e.g. a parsed YAML file."""

        raw_db_path = data.get("database_path")
        if raw_db_path:
            candidate = Path(str(raw_db_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        return Settings(
            database_path=database_path,
            host=str(data.get("host", "0.0.0.0")),
            port=int(data.get("port", DEFAULT_PORT)),
            session_ttl=timedelta(
                hours=float(data.get("session_ttl_hours", DEFAULT_SESSION_TTL_HOURS))
            ),
            session_cookie_secure=_flag(data.get("session_cookie_secure"), False),
            enrollment_strategy=str(data.get("enrollment_strategy", "atomic")).strip().lower(),
            allow_duplicate_enrollment=_flag(data.get("allow_duplicate_enrollment"), True),
        )


def load_config_file(config_path: Path) -> Dict[str, object]:
    """Load raw settings from a YAML file."""

    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")
    return raw


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build settings from the optional YAML file and the environment.

    Environment variables take precedence over values read from the file
    named by ``REGISTRAR_CONFIG``.
    """

    env = os.environ if environ is None else environ

    config_file = env.get("REGISTRAR_CONFIG")
    if config_file:
        config_path = Path(config_file).expanduser().resolve(strict=False)
        settings = Settings.from_dict(load_config_file(config_path), base_path=config_path.parent)
    else:
        settings = Settings(database_path=resolve_database_path(None))

    overrides: Dict[str, object] = {}
    if env.get("REGISTRAR_DB_PATH"):
        overrides["database_path"] = resolve_database_path(env["REGISTRAR_DB_PATH"])
    if env.get("REGISTRAR_HOST"):
        overrides["host"] = env["REGISTRAR_HOST"].strip()
    if env.get("PORT"):
        overrides["port"] = int(env["PORT"])
    if env.get("REGISTRAR_SESSION_TTL_HOURS"):
        overrides["session_ttl"] = timedelta(hours=float(env["REGISTRAR_SESSION_TTL_HOURS"]))
    if "REGISTRAR_SESSION_SECURE" in env:
        overrides["session_cookie_secure"] = _env_flag(env.get("REGISTRAR_SESSION_SECURE"))
    if env.get("REGISTRAR_ENROLLMENT_STRATEGY"):
        overrides["enrollment_strategy"] = env["REGISTRAR_ENROLLMENT_STRATEGY"].strip().lower()
    if "REGISTRAR_ALLOW_DUPLICATE_ENROLLMENT" in env:
        overrides["allow_duplicate_enrollment"] = _env_flag(
            env.get("REGISTRAR_ALLOW_DUPLICATE_ENROLLMENT"), default=True
        )

    return replace(settings, **overrides) if overrides else settings


__all__ = [
    "ENROLLMENT_STRATEGIES",
    "SESSION_COOKIE_NAME",
    "Settings",
    "load_config_file",
    "load_settings",
    "resolve_database_path",
]
