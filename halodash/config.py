"""
Configuration models for halodash.

Classes:
    HaloConnection: Credentials and endpoint of a HaloPSA instance.
    EngineSettings: Tunables of the dashboard builder and report validator.
    HaloDashConfig: The root model for a halodash YAML configuration file.

Secrets may be supplied through ``HALO_*`` environment variables, which take
precedence over values in the file.
"""

from __future__ import annotations

import os
from typing import Any

import yaml  # type: ignore[import]
from pydantic import BaseModel, Field, field_validator

ENV_OVERRIDES: dict[str, str] = {
    "HALO_BASE_URL": "base_url",
    "HALO_CLIENT_ID": "client_id",
    "HALO_CLIENT_SECRET": "client_secret",
    "HALO_TENANT": "tenant",
}


class HaloConnection(BaseModel):
    """
    Connection settings for a HaloPSA instance.

    Attributes:
        base_url (str): Instance root, e.g. ``https://acme.halopsa.com``.
        client_id (str): OAuth2 client id of the API application.
        client_secret (str): OAuth2 client secret.
        tenant (str | None): Tenant name for hosted instances.
        timeout_seconds (float): Per-request timeout.
    """

    base_url: str
    client_id: str
    client_secret: str
    tenant: str | None = None
    timeout_seconds: float = Field(default=60.0, gt=0)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        normalized = value.strip().rstrip("/")
        if not normalized.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return normalized

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/api"

    @property
    def auth_url(self) -> str:
        if self.tenant:
            return f"{self.base_url}/auth/token?tenant={self.tenant}"
        return f"{self.base_url}/auth/token"


class EngineSettings(BaseModel):
    """
    Tunables shared by the composer, synthesizer and validator.

    Attributes:
        grid_width (int): Width of the dashboard grid in units.
        match_threshold (int): Minimum keyword score for reusing a report.
        report_list_count (int): How many reports to load into the report cache.
        max_fix_attempts (int): Default bound of the validate-and-fix loop.
        reserved_prefix (str): Name prefix of auto-synthesized reports.
        report_category (str): Category assigned to auto-synthesized reports.
        suggestion_limit (int): Maximum number of suggested widgets.
    """

    grid_width: int = Field(default=12, ge=1)
    match_threshold: int = Field(default=5, ge=1)
    report_list_count: int = Field(default=500, ge=1)
    max_fix_attempts: int = Field(default=3, ge=1)
    reserved_prefix: str = "Dashboard - "
    report_category: str = "Dashboard"
    suggestion_limit: int = Field(default=8, ge=1)

    def is_reserved_name(self, name: str | None) -> bool:
        """Whether a report name follows the auto-synthesized naming convention."""
        return bool(name) and name.lower().startswith(self.reserved_prefix.lower())


class HaloDashConfig(BaseModel):
    connection: HaloConnection | None = None
    engine: EngineSettings = Field(default_factory=EngineSettings)


def apply_env_overrides(raw: dict[str, Any], environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Merge ``HALO_*`` environment variables into the ``connection`` block."""

    env = os.environ if environ is None else environ
    merged = dict(raw)
    connection = dict(merged.get("connection") or {})
    for variable, field in ENV_OVERRIDES.items():
        value = env.get(variable)
        if value:
            connection[field] = value
    if connection:
        merged["connection"] = connection
    return merged


def load_config(path: str | None, environ: dict[str, str] | None = None) -> HaloDashConfig:
    """Load a YAML configuration file (optional) and apply environment overrides."""

    raw: dict[str, Any] = {}
    if path:
        with open(path, encoding="utf-8") as config_file:
            raw = yaml.safe_load(config_file) or {}
    return HaloDashConfig(**apply_env_overrides(raw, environ))
