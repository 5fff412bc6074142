"""Credential loading for lock backends.

Secrets are read from the process environment at the moment a backend
client is built, never at resolution time.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from statelock.core.constants import ARM_ACCESS_KEY_ENV, ARM_STORAGE_ENDPOINT_ENV
from statelock.core.exceptions import CredentialsMissingError


def normalize_credential_value(value: object) -> str:
    """Normalize a credential value consistently across all sources.

    Strips whitespace and one pair of surrounding quotes (common when a
    value is exported from a .env file).
    """
    if value is None:
        return ""
    s = str(value).strip()
    if len(s) >= 2 and ((s.startswith('"') and s.endswith('"')) or (s.startswith("'") and s.endswith("'"))):
        s = s[1:-1]
    return s


class EnvironmentCredentialLoader:
    """Load a single secret from an environment variable."""

    def __init__(self, env_var: str, environ: Mapping[str, str] | None = None):
        self.env_var = env_var
        self._environ = environ

    @property
    def source_name(self) -> str:
        return self.env_var

    def load(self) -> str | None:
        environ = os.environ if self._environ is None else self._environ
        value = normalize_credential_value(environ.get(self.env_var))
        return value or None

    def require(self, logger: logging.Logger | None = None) -> str:
        """Return the secret or raise CredentialsMissingError."""
        value = self.load()
        if value is None:
            if logger is not None:
                logger.debug(f"Missing required environment variable: {self.env_var}")
            raise CredentialsMissingError(
                f"{self.env_var} environment variable must be set",
                source=self.env_var,
                details=f"export {self.env_var} before acquiring or releasing the lock",
            )
        return value


def load_azure_access_key(environ: Mapping[str, str] | None = None, logger: logging.Logger | None = None) -> str:
    """Read the Azure storage account access key (ARM_ACCESS_KEY)."""
    return EnvironmentCredentialLoader(ARM_ACCESS_KEY_ENV, environ).require(logger)


def load_azure_endpoint_override(environ: Mapping[str, str] | None = None) -> str | None:
    """Read the optional blob endpoint override (ARM_STORAGE_ENDPOINT)."""
    return EnvironmentCredentialLoader(ARM_STORAGE_ENDPOINT_ENV, environ).load()


def bootstrap_dotenv(logger: logging.Logger | None = None, path: str | Path | None = None) -> bool:
    """Load a .env file into the process environment without overriding set variables.

    Searches upward from the working directory when no path is given.
    Returns True if a file was loaded.
    """
    log = logger or logging.getLogger(__name__)
    dotenv_path = str(path) if path is not None else find_dotenv(usecwd=True)
    if not dotenv_path:
        log.debug(".env file not found")
        return False
    loaded = load_dotenv(dotenv_path, override=False)
    if loaded:
        log.debug(f"Loaded environment from {dotenv_path}")
    return loaded
