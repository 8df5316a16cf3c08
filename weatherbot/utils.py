import inspect
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


async def fire_callback(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    """Call a sync or async callback, logging instead of raising on failure."""
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.exception(f"Callback {getattr(callback, '__name__', callback)!r} failed: {e}")
