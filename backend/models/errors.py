"""
Error types raised by the telemetry pipeline.
"""


class ObservabilityError(Exception):
    """Base class for pipeline errors"""


class IngestionFailure(ObservabilityError):
    """A sample or audit event could not be recorded"""


class QueryFailure(ObservabilityError):
    """The audit log could not be read"""
