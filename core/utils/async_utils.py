"""Async utilities for concurrent processing."""

import asyncio
import logging
from typing import Any, Coroutine, List


async def gather_with_error_collection(
    tasks: List[Coroutine],
    logger: logging.Logger,
    error_template: str = "Task failed: {error}",
) -> tuple[List[Any], List[dict]]:
    """Run tasks concurrently and separate successes from errors.

    Every task settles before this returns; one failure never cancels the
    others.

    Returns:
        (successes, errors) where each error is {"index": i, "error": str}
        and i is the task's position in the input list.
    """
    results = await asyncio.gather(*tasks, return_exceptions=True)
    successes = []
    errors = []

    for i, result in enumerate(results):
        if isinstance(result, Exception):
            logger.warning(error_template.format(index=i, error=result))
            errors.append({"index": i, "error": str(result)})
        else:
            successes.append(result)

    return successes, errors
