"""Utilities for running async operations in CLI commands."""

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run a coroutine to completion in a fresh event loop.

    Click commands are synchronous; each command that needs the
    orchestration API or the probes runs its async body through this.

    Args:
        coro: The coroutine to run

    Returns:
        The result of the coroutine
    """
    return asyncio.run(coro)
