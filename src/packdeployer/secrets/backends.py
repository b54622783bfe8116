#!/usr/bin/env python3
"""
Secret backends.

A backend answers ``resolve(logical_name, tenant, environment)`` with the
secret value or raises SecretNotFound. Which backend is used is discovered
from the environment:

- PACK_DEPLOYER_SECRETS_FILE set: FileSecretBackend over that YAML/JSON file
- otherwise: EnvSecretBackend reading PACK_DEPLOYER_SECRET_<TENANT>_<ENV>_<NAME>
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from packdeployer.core.errors import ConfigurationError, create_error_context

logger = logging.getLogger(__name__)

SECRET_ENV_PREFIX = "PACK_DEPLOYER_SECRET"
SECRETS_FILE_ENV = "PACK_DEPLOYER_SECRETS_FILE"


class SecretNotFound(LookupError):
    """The backend holds no value for the requested secret."""

    def __init__(self, logical_name: str, tenant: str, environment: str, detail: str = "not found"):
        super().__init__(f"{logical_name}: {detail}")
        self.logical_name = logical_name
        self.tenant = tenant
        self.environment = environment
        self.detail = detail


class SecretBackend(ABC):
    """Contract for secret stores keyed by (tenant, environment)."""

    name = "backend"

    @abstractmethod
    def resolve(self, logical_name: str, tenant: str, environment: str) -> str:
        """
        Return the secret value.

        Raises:
            SecretNotFound: If no value exists for the secret
        """


def env_secret_key(logical_name: str, tenant: str, environment: str) -> str:
    parts = [SECRET_ENV_PREFIX, tenant, environment, logical_name]
    return "_".join(re.sub(r"[^A-Za-z0-9]", "_", part).upper() for part in parts)


class EnvSecretBackend(SecretBackend):
    """Secrets from environment variables."""

    name = "env"

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = os.environ if environ is None else environ

    def resolve(self, logical_name: str, tenant: str, environment: str) -> str:
        key = env_secret_key(logical_name, tenant, environment)
        value = self.environ.get(key)
        if value is None:
            raise SecretNotFound(logical_name, tenant, environment, f"{key} is not set")
        return value


class FileSecretBackend(SecretBackend):
    """
    Secrets from a YAML or JSON file laid out as tenant -> environment -> name:

        acme:
          staging:
            SLACK_BOT_TOKEN: xoxb-...
    """

    name = "file"

    def __init__(self, path: Path):
        self.path = Path(path)
        self._data = self._load()

    def _load(self) -> Dict:
        context = create_error_context(operation="load_secrets", file_path=str(self.path))
        if not self.path.exists():
            raise ConfigurationError(f"secrets file not found: {self.path}", context=context)
        try:
            with open(self.path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"secrets file {self.path} is invalid: {e}", context=context, cause=e)
        if not isinstance(data, dict):
            raise ConfigurationError(f"secrets file {self.path} must contain a mapping", context=context)
        return data

    def resolve(self, logical_name: str, tenant: str, environment: str) -> str:
        scoped = self._data.get(tenant, {}) or {}
        values = scoped.get(environment, {}) if isinstance(scoped, dict) else {}
        if isinstance(values, dict):
            wanted = logical_name.lower()
            for key, value in values.items():
                if str(key).lower() == wanted and value is not None:
                    return str(value)
        raise SecretNotFound(
            logical_name, tenant, environment, f"no entry {tenant}/{environment}/{logical_name} in {self.path}"
        )


class InMemorySecretBackend(SecretBackend):
    """Dictionary-backed store for embedding hosts and tests."""

    name = "memory"

    def __init__(self, values: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = {}
        for key, value in (values or {}).items():
            tenant, environment, logical_name = key.split("/", 2)
            self.put(tenant, environment, logical_name, value)

    @staticmethod
    def _key(tenant: str, environment: str, logical_name: str) -> str:
        return f"{tenant}/{environment}/{logical_name.lower()}"

    def put(self, tenant: str, environment: str, logical_name: str, value: str) -> None:
        self._values[self._key(tenant, environment, logical_name)] = value

    def resolve(self, logical_name: str, tenant: str, environment: str) -> str:
        try:
            return self._values[self._key(tenant, environment, logical_name)]
        except KeyError:
            raise SecretNotFound(logical_name, tenant, environment)


def discover_backend(environ: Optional[Mapping[str, str]] = None) -> SecretBackend:
    """Pick the secret backend from the environment."""
    environ = os.environ if environ is None else environ
    secrets_file = environ.get(SECRETS_FILE_ENV)
    if secrets_file:
        logger.debug("using secrets file %s", secrets_file)
        return FileSecretBackend(Path(secrets_file))
    return EnvSecretBackend(environ)
