"""Model gateway interface and shared types.

Defines the Protocol the decision policy calls and the reply dataclass
it receives. This decouples the policy from any particular transport,
so a proxy client, a vendor SDK or a test double can stand in.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

from .config import ModelConfig


@dataclass
class ModelReply:
    """Parsed reply from the model endpoint.

    ``payload`` is the decision JSON object the model produced; it has been
    parsed but not yet validated against the select/generate schema.
    """

    payload: dict[str, Any]
    latency_ms: int
    attempts: int = 1
    endpoint: str = ""
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


class ModelGateway(Protocol):
    """Protocol for the remote model call."""

    async def invoke(
        self,
        messages: list[dict[str, str]],
        config: ModelConfig,
    ) -> ModelReply:
        """Issue a single request under the configured timeout.

        Raises:
            TransportError: Network failure or timeout.
            ProtocolError: Non-success status or unparseable body.
        """
        ...

    async def invoke_with_retry(
        self,
        messages: list[dict[str, str]],
        config: ModelConfig,
    ) -> ModelReply:
        """Invoke with exponential backoff up to ``config.max_retries`` retries.

        The last failure is re-raised unchanged once retries are exhausted.
        """
        ...
