"""
CLI Configuration Module

Configuration for the imagesign CLI. Settings come from defaults, then an
optional YAML file, then IMAGESIGN_* environment variables.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Mapping, Optional

import yaml

from signing.passphrase import DEFAULT_PASSWORD_ENV

ENV_PREFIX = "IMAGESIGN_"

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "imagesign" / "config.yaml"


@dataclass
class SignConfig:
    """Settings shared by all imagesign commands."""

    default_format: str = "compat"

    # Key passphrase
    password_env: str = DEFAULT_PASSWORD_ENV
    interactive: bool = True

    # Registry access
    docker_config: Optional[str] = None
    insecure_registries: List[str] = field(default_factory=list)
    request_timeout: float = 30.0
    username: Optional[str] = None
    password: Optional[str] = None


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config_from_file(path: Path) -> SignConfig:
    """Load configuration from a YAML file."""
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    known = {f.name for f in fields(SignConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown configuration keys in {path}: {', '.join(unknown)}")

    config = SignConfig(**data)
    if isinstance(config.insecure_registries, str):
        config.insecure_registries = [config.insecure_registries]
    return config


def apply_env_overrides(config: SignConfig, environ: Optional[Mapping[str, str]] = None) -> SignConfig:
    """Override config fields with IMAGESIGN_* environment variables."""
    env = os.environ if environ is None else environ

    if env.get(f"{ENV_PREFIX}FORMAT"):
        config.default_format = env[f"{ENV_PREFIX}FORMAT"]
    if env.get(f"{ENV_PREFIX}PASSWORD_ENV"):
        config.password_env = env[f"{ENV_PREFIX}PASSWORD_ENV"]
    if env.get(f"{ENV_PREFIX}INTERACTIVE"):
        config.interactive = _parse_bool(env[f"{ENV_PREFIX}INTERACTIVE"])
    if env.get(f"{ENV_PREFIX}DOCKER_CONFIG"):
        config.docker_config = env[f"{ENV_PREFIX}DOCKER_CONFIG"]
    if env.get(f"{ENV_PREFIX}INSECURE_REGISTRIES"):
        config.insecure_registries = [
            r.strip() for r in env[f"{ENV_PREFIX}INSECURE_REGISTRIES"].split(",") if r.strip()
        ]
    if env.get(f"{ENV_PREFIX}REQUEST_TIMEOUT"):
        config.request_timeout = float(env[f"{ENV_PREFIX}REQUEST_TIMEOUT"])
    if env.get(f"{ENV_PREFIX}USERNAME"):
        config.username = env[f"{ENV_PREFIX}USERNAME"]
    if env.get(f"{ENV_PREFIX}REGISTRY_PASSWORD"):
        config.password = env[f"{ENV_PREFIX}REGISTRY_PASSWORD"]

    return config


def load_config(config_path: Optional[Path] = None,
                environ: Optional[Mapping[str, str]] = None) -> SignConfig:
    """
    Load configuration from file and environment.

    An explicit path must exist; the default path is used only if present.
    Environment variables override file settings.
    """
    if config_path is not None:
        config = load_config_from_file(Path(config_path))
    elif DEFAULT_CONFIG_PATH.exists():
        config = load_config_from_file(DEFAULT_CONFIG_PATH)
    else:
        config = SignConfig()

    return apply_env_overrides(config, environ)
