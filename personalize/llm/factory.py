"""Model gateway factory.

Creates the appropriate ModelGateway for the configured transport.
"""

import asyncio
from typing import Any

from .gateway import HttpModelGateway
from .interface import ModelGateway


def create_model_gateway(transport: str = "http", **kwargs: Any) -> ModelGateway:
    """Create a model gateway.

    Args:
        transport: Gateway transport name. Supported values: "http".
        **kwargs: Transport-specific arguments.
            For "http": optional `client` (httpx.AsyncClient), `settings`
            and `sleep` (awaitable backoff hook).

    Returns:
        A ModelGateway implementation.

    Raises:
        ValueError: If the transport name is unknown.
    """
    if transport == "http":
        return HttpModelGateway(
            client=kwargs.get("client"),
            settings=kwargs.get("settings"),
            sleep=kwargs.get("sleep") or asyncio.sleep,
        )

    raise ValueError(
        f"Unknown model gateway transport: '{transport}'. "
        f"Supported transports: 'http'"
    )
