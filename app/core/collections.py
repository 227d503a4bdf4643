class CollectionNames:
    """MongoDB collection names used across the app."""

    FAMILIES = "families"
    USERS = "users"
