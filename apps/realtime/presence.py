"""
Connection counting for online/offline presence.

A user may hold several sockets (tabs, devices). Counts live in the Django
cache so every worker sees the same number; a user goes online with the first
socket and offline when the last one closes.
"""

from django.core.cache import cache

PRESENCE_KEY = "presence:connections:{user_id}"
PRESENCE_TTL = 60 * 60 * 24


async def connection_opened(user_id) -> bool:
    """Count a new socket. True when it is the user's first."""
    key = PRESENCE_KEY.format(user_id=user_id)
    await cache.aadd(key, 0, PRESENCE_TTL)
    count = await cache.aincr(key)
    return count == 1


async def connection_closed(user_id) -> bool:
    """Release a socket. True when no socket remains."""
    key = PRESENCE_KEY.format(user_id=user_id)
    try:
        count = await cache.adecr(key)
    except ValueError:
        # Key expired or never set
        count = 0
    if count <= 0:
        await cache.adelete(key)
        return True
    return False


async def open_connections(user_id) -> int:
    return await cache.aget(PRESENCE_KEY.format(user_id=user_id), 0)
