"""Persisted configuration.

Values live in the option store so they can be changed without a deploy.
When an option is missing, the matching environment variable is used.
"""

from __future__ import annotations

import os
import secrets
from dataclasses import dataclass

from feedsync.db.options import OptionStore

TIMER = "timer"
EXTERNAL = "external"
TIERED = "tiered"
CRON_MODES = (TIMER, EXTERNAL, TIERED)

CRON_SECRET_KEY = "cron_secret"
CRON_MODE_KEY = "cron_mode"


@dataclass(slots=True)
class SourceCredentials:
    account_id: str | None
    access_token: str | None

    @property
    def complete(self) -> bool:
        return bool(self.account_id) and bool(self.access_token)


def _env_names(source: str) -> tuple[str, str]:
    prefix = source.upper()
    token_env = "GVAMAX_API_KEY" if source == "gvamax" else f"{prefix}_ACCESS_TOKEN"
    return f"{prefix}_ACCOUNT_ID", token_env


def load_credentials(options: OptionStore, source: str) -> SourceCredentials:
    account_env, token_env = _env_names(source)
    return SourceCredentials(
        account_id=options.get(f"{source}.account_id") or os.environ.get(account_env),
        access_token=options.get(f"{source}.access_token") or os.environ.get(token_env),
    )


def save_credentials(options: OptionStore, source: str, credentials: SourceCredentials) -> None:
    options.set(f"{source}.account_id", credentials.account_id)
    options.set(f"{source}.access_token", credentials.access_token)


def cron_mode(options: OptionStore) -> str:
    mode = options.get(CRON_MODE_KEY) or os.environ.get("CRON_MODE", TIMER)
    if mode not in CRON_MODES:
        raise ValueError(f"Unknown cron mode {mode!r}; expected one of {', '.join(CRON_MODES)}")
    return mode


def cron_secret(options: OptionStore) -> str:
    """Return the trigger secret, generating it on first use."""
    current = options.get(CRON_SECRET_KEY)
    if current:
        return current
    generated = secrets.token_hex(16)
    options.set(CRON_SECRET_KEY, generated)
    return generated
