"""TCP dial helpers."""

from __future__ import annotations

import asyncio

from ..errors import DialError
from ..shared.logging import Logger, get_logger


async def wait_for_successful_dial(
    host: str,
    port: int,
    timeout: float = 0.2,
    interval: float = 1.0,
    retries: int = 10,
    logger: Logger | None = None,
) -> None:
    """Dial ``host:port`` until a TCP connection succeeds.

    Args:
        host: Address to dial.
        port: TCP port.
        timeout: Per-attempt connect timeout in seconds.
        interval: Seconds to sleep between attempts.
        retries: Maximum number of attempts.
        logger: Logging capability.

    Raises:
        DialError: No attempt succeeded. Carries the last connection error.
    """
    logger = logger or get_logger(__name__)
    address = f"{host}:{port}"
    last_error: str | None = None

    for attempt in range(1, retries + 1):
        try:
            _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout)
        except asyncio.TimeoutError:
            last_error = f"dial tcp {address}: i/o timeout"
        except OSError as e:
            last_error = f"dial tcp {address}: {e.strerror or e}"
        else:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass  # Peer already hung up
            return

        logger.debug("Dial failed, trying again", address=address, attempt=attempt, error=last_error)
        if attempt < retries:
            await asyncio.sleep(interval)

    raise DialError(last_error or f"dial tcp {address}: no attempts made", address=address)
