"""Exceptions raised by dumbwatch."""


class DumbwatchError(Exception):
    """Base class for dumbwatch errors."""


class ConfigurationError(DumbwatchError, ValueError):
    """A credential or endpoint required by the event store is missing."""


class UpstreamUnavailable(DumbwatchError):
    """The event store could not be queried or written to."""


class MalformedRecord(DumbwatchError, ValueError):
    """A single store row could not be parsed into a report."""
