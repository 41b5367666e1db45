"""Exception types raised by the selector algorithms.

A per-event skip is not an exception; see ``EventContext.skip()``.
"""


class ConfigurationError(ValueError):
    """Invalid or incomplete algorithm configuration, raised before any event is processed."""


class MissingUpstreamData(LookupError):
    """A required input (collection, EventInfo, vertices, variation list) is absent from the event store."""


class DuplicateRecordError(RuntimeError):
    """A second object was recorded in the event store under an existing key."""
