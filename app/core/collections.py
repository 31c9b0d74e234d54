class CollectionNames:
    """MongoDB collection names used by the repositories."""

    FAVICON_META = "favicon_meta"
    RESPONSE_CACHE = "response_cache"
