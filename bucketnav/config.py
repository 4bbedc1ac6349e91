from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from rich.prompt import Prompt

DEFAULT_REGION = "us-west-2"
DEFAULT_URL_EXPIRY = 3600

PromptFn = Callable[[str, bool], str]


class ConfigError(RuntimeError):
    """Raised when the store configuration cannot be completed."""


@dataclass(frozen=True)
class StoreConfig:
    access_key_id: str
    secret_access_key: str
    region: str = DEFAULT_REGION
    endpoint_url: Optional[str] = None
    url_expiry: int = DEFAULT_URL_EXPIRY


def _terminal_prompt(label: str, secret: bool) -> str:
    if not sys.stdin.isatty():
        raise ConfigError(f"{label} is not set and no terminal is available to ask for it")
    return Prompt.ask(label, password=secret)


def _parse_expiry(value: object) -> int:
    try:
        expiry = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"URL expiry must be a whole number of seconds, got {value!r}")
    if expiry <= 0:
        raise ConfigError("URL expiry must be greater than zero")
    return expiry


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    prompt: Optional[PromptFn] = None,
    *,
    region: Optional[str] = None,
    endpoint_url: Optional[str] = None,
    url_expiry: Optional[int] = None,
) -> StoreConfig:
    """Build the store configuration once at startup.

    Credentials come from ``AWS_ACCESS_KEY_ID`` / ``AWS_SECRET_ACCESS_KEY`` and
    are asked for interactively when missing. Explicit keyword arguments
    (usually command line flags) win over the environment.
    """
    env = os.environ if environ is None else environ
    ask = prompt or _terminal_prompt

    access_key_id = env.get("AWS_ACCESS_KEY_ID", "").strip()
    if not access_key_id:
        access_key_id = ask("Enter your AWS Access Key ID", False).strip()
    secret_access_key = env.get("AWS_SECRET_ACCESS_KEY", "").strip()
    if not secret_access_key:
        secret_access_key = ask("Enter your AWS Secret Access Key", True).strip()
    if not access_key_id or not secret_access_key:
        raise ConfigError("AWS access key id and secret access key are required")

    resolved_region = region or env.get("AWS_REGION", "").strip() or DEFAULT_REGION
    resolved_endpoint = endpoint_url or env.get("AWS_ENDPOINT_URL", "").strip() or None
    if url_expiry is not None:
        expiry = _parse_expiry(url_expiry)
    elif env.get("BUCKETNAV_URL_EXPIRY"):
        expiry = _parse_expiry(env["BUCKETNAV_URL_EXPIRY"])
    else:
        expiry = DEFAULT_URL_EXPIRY

    return StoreConfig(
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
        region=resolved_region,
        endpoint_url=resolved_endpoint,
        url_expiry=expiry,
    )
