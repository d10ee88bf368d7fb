"""
Credential stores used by plugins that log in to remote services.

Plugins only depend on the small `CredentialStore` contract: a secret
string looked up by (service, account). The default store reads secrets from
environment variables so that runs on build machines need no interactive
setup.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Dict, Mapping, MutableMapping, Optional, Tuple, Union

from ..validation import ConfigurationError

logger = logging.getLogger(__name__)


class CredentialStore:
    """Base class of credential stores."""

    def get_password(self, service: str, account: str) -> Optional[str]:
        """Return the password or None if the store has none for the key."""
        raise NotImplementedError

    def set_password(self, service: str, account: str, password: str) -> None:
        raise NotImplementedError


class EnvironmentCredentialStore(CredentialStore):
    """
    Reads passwords from environment variables.

    The variable name is `<prefix><SERVICE>_<ACCOUNT>_PASSWORD`, upper-cased
    and with every character outside [A-Z0-9_] replaced by an underscore.
    E.g. service `steam`, account `builder@example.com` with the default
    prefix becomes `TRIMMER_STEAM_BUILDER_EXAMPLE_COM_PASSWORD`.
    """

    def __init__(self, prefix: str = "TRIMMER_", environ: Optional[MutableMapping[str, str]] = None):
        self.prefix = prefix
        self._environ = environ if environ is not None else os.environ

    def variable_name(self, service: str, account: str) -> str:
        raw = f"{self.prefix}{service}_{account}_PASSWORD".upper()
        return re.sub(r"[^A-Z0-9_]", "_", raw)

    def get_password(self, service: str, account: str) -> Optional[str]:
        name = self.variable_name(service, account)
        value = self._environ.get(name)
        if value is None:
            logger.debug(f"No password in environment variable {name}")
        return value

    def set_password(self, service: str, account: str, password: str) -> None:
        self._environ[self.variable_name(service, account)] = password


class MemoryCredentialStore(CredentialStore):
    """Keeps passwords in memory, mainly for tests and embedding."""

    def __init__(self, passwords: Optional[Dict[Tuple[str, str], str]] = None):
        self._passwords: Dict[Tuple[str, str], str] = dict(passwords or {})

    def get_password(self, service: str, account: str) -> Optional[str]:
        return self._passwords.get((service, account))

    def set_password(self, service: str, account: str, password: str) -> None:
        self._passwords[(service, account)] = password


@dataclass
class Login:
    """User name and password service of a remote login."""

    user: str = ""
    service: str = ""

    @classmethod
    def coerce(cls, value: Union["Login", Mapping[str, str], str, None], service: str) -> "Login":
        """
        Create a login from a configuration value: a table with `user` and
        optional `service`, a plain user name or nothing.
        """
        if isinstance(value, Login):
            return value
        if value is None:
            return cls(service=service)
        if isinstance(value, str):
            return cls(user=value, service=service)
        unknown = set(value) - {"user", "service"}
        if unknown:
            raise ConfigurationError(f"Unknown login settings: {', '.join(sorted(unknown))}")
        return cls(user=value.get("user", ""), service=value.get("service") or service)

    @property
    def is_set(self) -> bool:
        return bool(self.user)

    def require_password(self, store: CredentialStore, source: Optional[str] = None) -> str:
        """
        Look up the password of this login.

        Raises:
            ConfigurationError: If the user is not set or no password is stored
        """
        if not self.user:
            raise ConfigurationError("Login user not set", source=source)
        password = store.get_password(self.service, self.user)
        if not password:
            raise ConfigurationError(
                f"No password found for '{self.user}' (service '{self.service}')",
                source=source,
            )
        return password
