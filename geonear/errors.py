"""Errors raised while compiling proximity queries."""


class ConfigurationError(ValueError):
    """An option value is malformed. Raised before any SQL is built."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"Invalid option '{key}': {message}")
