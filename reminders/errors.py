"""
Error kinds raised by the reminder scheduler.

Per-item failures are collected by the driver instead of aborting a run;
only failures of the initial assignment/rule listing propagate.
"""


class ReminderError(Exception):
    """Base class for all scheduler errors."""


class ConfigurationError(ReminderError):
    """Missing or invalid timezone / deadline time on an assignment."""


class InvalidDescriptorError(ReminderError):
    """A recipient descriptor in a reminder config cannot be parsed."""

    def __init__(self, descriptor):
        self.descriptor = descriptor
        super().__init__(f"Invalid recipient descriptor: {descriptor!r}")


class DataAccessError(ReminderError):
    """A read or write against the data store failed."""


class NotFoundError(ReminderError):
    """A report, assignment or rule required by a manual operation is missing."""


class PartialRunError(ReminderError):
    """Aggregate of the per-item failures collected during one driver pass."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__(f"{len(self.errors)} reminder evaluation(s) failed")
