class InvalidInput(ValueError):
    """Raised when an input falls outside the engine's documented domain."""
