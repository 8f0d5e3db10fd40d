import logging
from collections.abc import AsyncGenerator
from contextlib import aclosing

from xihi.core.config import DEFAULT_MAX_BODY_SIZE
from xihi.core.errors import PayloadTooLarge

logger = logging.getLogger(__name__)


async def read_body(
    chunks: AsyncGenerator[bytes, None], max_size: int = DEFAULT_MAX_BODY_SIZE
) -> bytes:
    """
    Collect a streamed request body, refusing to hold more than ``max_size``.

    Raises PayloadTooLarge as soon as the running total passes the limit.
    The stream is closed on the way out, so nothing past the offending
    chunk is pulled from the connection.
    """
    buffer = bytearray()
    async with aclosing(chunks) as stream:
        async for chunk in stream:
            if len(buffer) + len(chunk) > max_size:
                logger.warning(
                    f"Request body exceeds {max_size} bytes, aborting read"
                )
                raise PayloadTooLarge()
            buffer += chunk
    return bytes(buffer)
