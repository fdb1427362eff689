"""Connectivity probe used to choose between online and offline gradle runs."""

import asyncio
import logging
import socket

logger = logging.getLogger(__name__)

DEFAULT_PROBE_HOST = "google.com"


async def is_online(host: str = DEFAULT_PROBE_HOST) -> bool:
    """Return True if `host` resolves. Any resolution error means offline."""
    loop = asyncio.get_running_loop()
    try:
        await loop.getaddrinfo(host, None)
    except (socket.gaierror, OSError, UnicodeError) as exc:
        logger.info("Connectivity probe for %s failed (%s); assuming offline", host, exc)
        return False
    return True
