"""
Run settings: command-line values take precedence over environment variables.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from . import config
from .exceptions import ConfigurationError

_TRUTHY = {'1', 'true', 'yes', 'on'}
_FALSY = {'0', 'false', 'no', 'off', ''}


@dataclass(frozen=True)
class Settings:
    base_url: str
    username: str
    password: str
    photos_dir: Path
    parallelism: int = config.DEFAULT_PARALLELISM
    verify_tls: bool = False
    timeout: Optional[float] = None


def _pick(cli_value: Any, environ: Mapping[str, str], key: str) -> Optional[str]:
    if cli_value not in (None, ""):
        return str(cli_value)
    value = environ.get(key, "")
    return value or None


def _parse_bool(raw: str, key: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ConfigurationError(f"{key} must be a boolean, got {raw!r}")


def load_settings(args: Any = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Builds Settings from parsed CLI args (any object with the matching
    attributes, or None) and the environment.

    Raises ConfigurationError listing every missing required value.
    """
    env = os.environ if environ is None else environ

    def arg(name):
        return getattr(args, name, None) if args is not None else None

    base_url = _pick(arg('url'), env, config.ENV_URL)
    username = _pick(arg('user'), env, config.ENV_USER)
    password = _pick(arg('password'), env, config.ENV_PASSWORD)
    photos_dir = _pick(arg('photos_dir'), env, config.ENV_PHOTOS_DIR)

    missing = [key for key, value in (
        (config.ENV_URL, base_url),
        (config.ENV_USER, username),
        (config.ENV_PASSWORD, password),
        (config.ENV_PHOTOS_DIR, photos_dir),
    ) if not value]
    if missing:
        raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")

    raw_parallel = _pick(arg('parallel'), env, config.ENV_PARALLEL) or str(config.DEFAULT_PARALLELISM)
    try:
        parallelism = int(raw_parallel)
    except ValueError:
        raise ConfigurationError(f"{config.ENV_PARALLEL} must be an integer, got {raw_parallel!r}")
    if parallelism < 1:
        raise ConfigurationError(f"{config.ENV_PARALLEL} must be at least 1, got {parallelism}")

    if arg('verify_tls') is not None:
        verify_tls = bool(arg('verify_tls'))
    else:
        verify_tls = _parse_bool(env.get(config.ENV_VERIFY_TLS, ""), config.ENV_VERIFY_TLS)

    raw_timeout = _pick(arg('timeout'), env, config.ENV_TIMEOUT)
    timeout = None
    if raw_timeout is not None:
        try:
            timeout = float(raw_timeout)
        except ValueError:
            raise ConfigurationError(f"{config.ENV_TIMEOUT} must be a number, got {raw_timeout!r}")
        if timeout <= 0:
            timeout = None

    return Settings(
        base_url=base_url.rstrip('/'),
        username=username,
        password=password,
        photos_dir=Path(photos_dir).expanduser(),
        parallelism=parallelism,
        verify_tls=verify_tls,
        timeout=timeout,
    )
