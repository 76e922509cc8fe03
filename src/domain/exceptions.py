"""Domain exceptions for the drawing batch runner."""


class DomainException(Exception):
    """Base exception for all domain errors."""
    pass


class ConfigurationError(DomainException):
    """Raised when run-level configuration is invalid."""
    pass


class OverrideTableError(ConfigurationError):
    """Raised when the override table cannot be loaded."""
    pass


class ExtensionModuleMissingError(ConfigurationError):
    """Raised when an extension module listed in settings does not exist."""

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(
            "Extension module(s) not found: " + ", ".join(str(p) for p in self.missing)
        )


class ScriptBuildError(DomainException):
    """Raised when a job script cannot be written."""
    pass


class EngineLaunchError(DomainException):
    """Raised when the engine process cannot be started."""
    pass
