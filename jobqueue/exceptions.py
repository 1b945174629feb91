"""
Queue exceptions.

Everything the queue engine raises derives from QueueException, so callers
can catch one type at the boundary. Store-level failures are always
QueueStoreError with the driver error chained as __cause__.
"""


class QueueException(RuntimeError):
    """Base class for queue errors."""


class QueueStoreError(QueueException):
    """The datastore failed (connectivity, constraint, timeout)."""


class ConfigurationError(QueueException):
    """Invalid queue or store configuration."""


class JobSerializationError(QueueException):
    """A job could not be serialized or deserialized."""


class UnknownJobTypeError(QueueException):
    """No job type is registered under the requested name."""


class RetryHydrationError(QueueException):
    """A failed job's payload could not be turned back into a job."""


class DedupCheckError(QueueException):
    """The unique-job lookup failed. Logged, never raised to producers."""


class InvalidCronExpressionError(QueueException):
    """A cron expression could not be parsed."""
