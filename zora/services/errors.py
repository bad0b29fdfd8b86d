class NotFound(LookupError):
    """A referenced row (product, sale, session...) does not exist."""
