"""Abstract base class for delivery channels."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseDelivery(ABC):
    """Base class for chat delivery channels."""

    max_message_length: int = 4096

    def __init__(self, config: dict):
        self.config = config

    @abstractmethod
    async def send(self, text: str) -> str:
        """Send one message and return its message id. Raises on failure."""
        ...

    @abstractmethod
    async def send_test(self) -> bool:
        """Send a test message to verify configuration."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Channel name."""
        ...
