"""Agent catalog entries and model selection for the Dust provider."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .errors import ProtocolMismatchError

LOGGER = logging.getLogger(__name__)

DUST_DEFAULT_MODEL_ID = "dust"
DEFAULT_MAX_TOKENS = 4096
DEFAULT_CONTEXT_WINDOW = 200_000


class DustModelInfo(BaseModel):
    """Capabilities and descriptive metadata of a Dust agent."""

    model_config = ConfigDict(extra="forbid", frozen=True, protected_namespaces=())

    max_tokens: int = Field(DEFAULT_MAX_TOKENS, ge=0, description="Maximum number of output tokens.")
    context_window: int = Field(DEFAULT_CONTEXT_WINDOW, ge=0, description="Context window size in tokens.")
    supports_images: bool = Field(True, description="Whether image content can be sent.")
    supports_prompt_cache: bool = Field(True, description="Whether prompt caching is available.")
    description: str | None = Field(None, description="Human-readable summary of the entry.")
    agent_id: str | None = Field(None, description="Dust agent configuration identifier (sId).")
    model_id: str | None = Field(None, description="Underlying model identifier bound to the agent.")
    agent_name: str | None = Field(None, description="Display name of the agent.")
    agent_description: str | None = Field(None, description="Agent description provided by Dust.")
    agent_instructions: str | None = Field(None, description="Agent instructions provided by Dust.")
    agent_picture_url: str | None = Field(None, description="Avatar URL of the agent.")


DUST_MODELS: Mapping[str, DustModelInfo] = MappingProxyType(
    {
        DUST_DEFAULT_MODEL_ID: DustModelInfo(
            agent_id=DUST_DEFAULT_MODEL_ID,
            agent_name="Dust",
            description="Default Dust assistant.",
        ),
    }
)


@dataclass(frozen=True, slots=True)
class ResolvedModel:
    """Identifier and catalog entry selected for a request."""

    id: str
    info: DustModelInfo


def get_model(
    requested: str | None,
    available_models: Mapping[str, DustModelInfo] | None = None,
) -> ResolvedModel:
    """Return the requested catalog entry, falling back to the default agent."""

    if requested and available_models and requested in available_models:
        return ResolvedModel(id=requested, info=available_models[requested])
    return ResolvedModel(id=DUST_DEFAULT_MODEL_ID, info=DUST_MODELS[DUST_DEFAULT_MODEL_ID])


def agent_info_from_configuration(config: Mapping[str, Any]) -> DustModelInfo | None:
    """Build a catalog entry from one agent configuration payload.

    Configurations without a ``model.modelId`` or an ``sId`` yield ``None``.
    """

    model = config.get("model")
    model_id = model.get("modelId") if isinstance(model, Mapping) else None
    agent_id = config.get("sId")
    if not model_id or not isinstance(agent_id, str) or not agent_id:
        return None

    return DustModelInfo(
        agent_id=agent_id,
        model_id=str(model_id),
        agent_name=_optional_str(config.get("name")),
        agent_description=_optional_str(config.get("description")),
        agent_instructions=_optional_str(config.get("instructions")),
        agent_picture_url=_optional_str(config.get("pictureUrl")),
    )


def models_from_catalog(payload: Any) -> dict[str, DustModelInfo]:
    """Map an ``agent_configurations`` response to entries keyed by agent id.

    Both a bare list and an object wrapping the list in
    ``agentConfigurations`` are accepted.
    """

    if isinstance(payload, Mapping):
        configurations = payload.get("agentConfigurations")
    else:
        configurations = payload

    if not isinstance(configurations, list):
        msg = "agent configuration response must be a list or contain 'agentConfigurations'"
        raise ProtocolMismatchError(msg)

    models: dict[str, DustModelInfo] = {}
    for index, config in enumerate(configurations):
        if not isinstance(config, Mapping):
            LOGGER.warning("skipping agent configuration %s: not an object", index)
            continue
        info = agent_info_from_configuration(config)
        if info is None or info.agent_id is None:
            LOGGER.debug("skipping agent configuration %s without a model", index)
            continue
        models[info.agent_id] = info
    return models


def sort_agent_ids(models: Mapping[str, DustModelInfo]) -> list[str]:
    """Agent ids ordered by display name, falling back to the id."""

    return sorted(models, key=lambda agent_id: (models[agent_id].agent_name or agent_id).casefold())


def search_agents(models: Mapping[str, DustModelInfo], term: str) -> list[str]:
    """Agent ids whose id, name or description contains ``term``."""

    needle = term.strip().casefold()
    if not needle:
        return sort_agent_ids(models)

    matches = []
    for agent_id in sort_agent_ids(models):
        info = models[agent_id]
        haystack = (agent_id, info.agent_name or "", info.agent_description or "")
        if any(needle in value.casefold() for value in haystack):
            matches.append(agent_id)
    return matches


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)
