from flask import current_app

from services.cache import NullCache


def get_cache():
    """The cache port configured on the running app."""
    return current_app.extensions.get("sweet_cache") or NullCache()


def cached(key, build, ttl=None):
    """Cache-aside for serialized read payloads; ttl in seconds."""
    cache = get_cache()
    getter = getattr(cache, "get", None)
    if getter is None:
        return build()
    payload = getter(key)
    if payload is None:
        payload = build()
        cache.set(key, payload, ttl=ttl)
    return payload
