"""Gateway configuration loaded from YAML"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "RELAYLLM_CONFIG"
DEFAULT_CONFIG_PATH = Path("relayllm.yaml")


class ProviderSettings(BaseModel):
    """Per-provider overrides"""

    timeout_seconds: Optional[float] = Field(
        default=None, gt=0, description="Timeout applied to calls to this provider"
    )
    base_url: Optional[str] = None
    api_version: Optional[str] = None
    project: Optional[str] = None
    location: Optional[str] = None
    credential_env: Optional[str] = Field(
        default=None, description="Environment variable holding the credential"
    )

    model_config = ConfigDict(extra="forbid")


class GatewayConfig(BaseModel):
    """Top-level configuration"""

    default_timeout_seconds: float = Field(default=60.0, gt=0)
    max_timeout_seconds: float = Field(default=300.0, gt=0)
    log_level: str = "INFO"
    providers: Dict[str, ProviderSettings] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _check_timeouts(self) -> "GatewayConfig":
        if self.default_timeout_seconds > self.max_timeout_seconds:
            raise ValueError("default_timeout_seconds must not exceed max_timeout_seconds")
        return self

    def provider(self, provider_id: str) -> ProviderSettings:
        return self.providers.get(provider_id.lower()) or ProviderSettings()

    def timeout_for(self, provider_id: str, requested: Optional[float] = None) -> float:
        """Resolve the per-call timeout, capped by ``max_timeout_seconds``"""
        settings = self.provider(provider_id)
        timeout = requested or settings.timeout_seconds or self.default_timeout_seconds
        return min(timeout, self.max_timeout_seconds)

    def credential_env_vars(self) -> Dict[str, str]:
        return {
            provider_id: settings.credential_env
            for provider_id, settings in self.providers.items()
            if settings.credential_env
        }


def load_config(path: Union[str, Path, None] = None) -> GatewayConfig:
    """Load configuration

    Lookup order: explicit ``path``, ``$RELAYLLM_CONFIG``, ``./relayllm.yaml``.
    Returns defaults when no file is found.
    """
    candidate = path or os.environ.get(CONFIG_ENV_VAR)
    config_path = Path(candidate) if candidate else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        if candidate:
            raise FileNotFoundError(f"Config file not found: {config_path}")
        logger.debug("No config file at %s; using defaults", config_path)
        return GatewayConfig()

    with config_path.open("r", encoding="utf-8") as f:
        loaded: Any = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"{config_path} must contain a mapping")

    providers = loaded.get("providers") or {}
    loaded["providers"] = {str(k).lower(): v for k, v in providers.items()}
    logger.info("Loaded configuration from %s", config_path)
    return GatewayConfig.model_validate(loaded)
