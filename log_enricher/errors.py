"""Exception hierarchy for the log enricher."""


class EnricherError(Exception):
    """Base class for all log enricher errors."""


class ConfigError(EnricherError):
    """Raised when a configuration value cannot be parsed."""


class DestinationError(EnricherError):
    """Raised when the destination sink fails to write or close."""


class PipelineClosedError(EnricherError):
    """Raised when records are submitted to a closed pipeline."""


class SourceClosedError(EnricherError):
    """Raised when a record is put into a closed source."""
