"""Adapter interface shared by provider implementations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from ..catalog import ResolvedModel
from ..message import Message
from .stream import BaseStreamIterator


class ModelAdapter(ABC):
    """Abstract interface for provider-specific adapters."""

    @abstractmethod
    def create_message(self, system_prompt: str, messages: Sequence[Message], /) -> BaseStreamIterator:
        """Return an async iterator that yields canonical streaming events."""

    @abstractmethod
    def get_model(self) -> ResolvedModel:
        """Return the model selected for requests made by this adapter."""
