from tablens.cache.refs import load_refs, parse_ref, ref_key, resolve_ref, save_refs
from tablens.cache.store import DEFAULT_CACHE_DIR, CacheKey, CacheStore, validate_agent

__all__ = [
    "DEFAULT_CACHE_DIR",
    "CacheKey",
    "CacheStore",
    "load_refs",
    "parse_ref",
    "ref_key",
    "resolve_ref",
    "save_refs",
    "validate_agent",
]
