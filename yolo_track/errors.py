class ShapeMismatchError(ValueError):
    """Raised when a raw output buffer does not match the declared box layout."""


class InvalidConfigurationError(ValueError):
    """Raised when a configuration value is outside its allowed range."""
