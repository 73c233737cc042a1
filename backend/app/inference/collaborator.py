"""
Async adapter around the text-generation collaborator.

The pipeline only ever sees `Collaborator = Callable[[str], Awaitable[str]]`.
`call_collaborator` is the single place that enforces the timeout and turns
every failure into a CollaboratorError.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from app.inference.base import LLMClient
from app.ir.errors import CollaboratorError

logger = logging.getLogger(__name__)

Collaborator = Callable[[str], Awaitable[str]]


def collaborator_from_client(client: LLMClient) -> Collaborator:
    """Wrap a blocking chat client so it can be awaited from the event loop."""

    async def collaborator(prompt: str) -> str:
        messages = [{"role": "user", "content": prompt}]
        return await asyncio.to_thread(client.generate, messages)

    return collaborator


async def call_collaborator(collaborator: Collaborator, prompt: str, timeout: float) -> str:
    """
    Await the collaborator with a hard timeout.

    Raises:
        CollaboratorError: on timeout, transport failure or an empty answer
    """
    try:
        response = await asyncio.wait_for(collaborator(prompt), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise CollaboratorError(f"Collaborator did not answer within {timeout:g}s") from e
    except Exception as e:
        raise CollaboratorError(f"Collaborator call failed: {e}") from e

    if not isinstance(response, str) or not response.strip():
        raise CollaboratorError("Collaborator returned an empty response")

    logger.debug("[LLM] collaborator answered with %d chars", len(response))
    return response
