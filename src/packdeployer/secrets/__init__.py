"""
Secret resolution: pluggable backends and the per-(tenant, environment) resolver.
"""

from .backends import (
    EnvSecretBackend,
    FileSecretBackend,
    InMemorySecretBackend,
    SecretBackend,
    SecretNotFound,
    discover_backend,
    env_secret_key,
)
from .resolver import ResolvedSecrets, SecretsResolver

__all__ = [
    "EnvSecretBackend",
    "FileSecretBackend",
    "InMemorySecretBackend",
    "ResolvedSecrets",
    "SecretBackend",
    "SecretNotFound",
    "SecretsResolver",
    "discover_backend",
    "env_secret_key",
]
