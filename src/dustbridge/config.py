"""Settings consumed by the Dust adapter."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from .core.catalog import DustModelInfo

DEFAULT_BASE_URL = "https://dust.tt"

ENV_API_KEY = "DUST_API_KEY"
ENV_WORKSPACE_ID = "DUST_WORKSPACE_ID"
ENV_BASE_URL = "DUST_BASE_URL"
ENV_ASSISTANT_ID = "DUST_ASSISTANT_ID"
ENV_MODEL_ID = "DUST_MODEL_ID"


class DustSettings(BaseModel):
    """Provider settings supplied by the host.

    Attributes
    ----------
    api_key:
        Bearer credential sent with every request. Required by the adapter.
    workspace_id:
        Dust workspace (tenant) identifier. Required by the adapter.
    base_url:
        Optional override of the public Dust endpoint.
    assistant_id:
        Explicitly selected agent configuration. Takes priority over
        :attr:`api_model_id` when addressing messages.
    api_model_id:
        Model or agent identifier selected in the host's generic model picker.
    available_models:
        Catalog previously returned by ``fetch_available_models``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    api_key: str | None = Field(None, description="Dust API key.")
    workspace_id: str | None = Field(None, description="Dust workspace identifier.")
    base_url: str | None = Field(None, description="Base URL override for the Dust API.")
    assistant_id: str | None = Field(None, description="Selected Dust agent configuration id.")
    api_model_id: str | None = Field(None, description="Selected model identifier.")
    available_models: dict[str, DustModelInfo] | None = Field(
        None, description="Previously fetched agent catalog keyed by agent id."
    )

    @property
    def resolved_base_url(self) -> str:
        """Base URL without trailing slashes, defaulting to the public endpoint."""

        base = (self.base_url or "").strip() or DEFAULT_BASE_URL
        return base.rstrip("/")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "DustSettings":
        """Build settings from ``DUST_*`` environment variables.

        Blank values are treated as unset.
        """

        env = os.environ if environ is None else environ

        def _read(name: str) -> str | None:
            value = env.get(name, "").strip()
            return value or None

        return cls(
            api_key=_read(ENV_API_KEY),
            workspace_id=_read(ENV_WORKSPACE_ID),
            base_url=_read(ENV_BASE_URL),
            assistant_id=_read(ENV_ASSISTANT_ID),
            api_model_id=_read(ENV_MODEL_ID),
        )


def validate_api_configuration(settings: DustSettings) -> str | None:
    """Return a user-facing error when the credentials are incomplete."""

    if not settings.api_key or not settings.workspace_id:
        return "You must provide both an API key and Workspace ID."
    return None


__all__ = [
    "DEFAULT_BASE_URL",
    "DustSettings",
    "validate_api_configuration",
]
