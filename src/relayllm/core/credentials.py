"""Credential collaborator contract and environment-backed credential source"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Protocol

from .exceptions import CanonicalError, ErrorKind

logger = logging.getLogger(__name__)


class CredentialShape(str, Enum):
    """How a provider expects to be authenticated"""

    bearer_token = "bearer_token"
    api_key_header = "api_key_header"
    oauth_access_token = "oauth_access_token"


@dataclass(frozen=True)
class BearerToken:
    token: str = field(repr=False)

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@dataclass(frozen=True)
class ApiKeyHeader:
    key: str = field(repr=False)
    header: str = "x-api-key"

    def auth_headers(self) -> Dict[str, str]:
        return {self.header: self.key}


class CredentialSource(Protocol):
    """Returns opaque credential material for a provider, or raises AuthError"""

    def get(self, shape: CredentialShape, provider_id: str) -> object:
        ...


DEFAULT_ENV_VARS: Mapping[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "vertex_ai": "VERTEX_AI_ACCESS_TOKEN",
}


class EnvCredentialSource:
    """Reads credentials from environment variables

    Args:
        env_vars: Overrides of provider id -> environment variable name
        environ: Mapping to read from (defaults to ``os.environ``)
    """

    def __init__(
        self,
        env_vars: Optional[Mapping[str, str]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._env_vars = dict(DEFAULT_ENV_VARS)
        self._env_vars.update(env_vars or {})
        self._environ = environ if environ is not None else os.environ

    def env_var_for(self, provider_id: str) -> str:
        return self._env_vars.get(
            provider_id, f"{provider_id.upper().replace('-', '_')}_API_KEY"
        )

    def get(self, shape: CredentialShape, provider_id: str) -> object:
        env_var = self.env_var_for(provider_id)
        value = self._environ.get(env_var)
        if not value:
            raise CanonicalError(
                ErrorKind.AUTH_ERROR,
                f"{env_var} missing",
                provider=provider_id,
            )

        shape = CredentialShape(shape)
        logger.debug("Resolved %s credentials for %s from %s", shape.value, provider_id, env_var)
        if shape is CredentialShape.api_key_header:
            return ApiKeyHeader(value)
        # OAuth access tokens are presented exactly like bearer tokens
        return BearerToken(value)
