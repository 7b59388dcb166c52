"""Error types raised inside the matching engines.

Internal helpers raise these; every public operation catches them at its
boundary, logs, and reports a boolean or sentinel instead.
"""


class SummonError(Exception):
    """Base class for engine errors."""


class InvalidItemError(SummonError, ValueError):
    """An item failed validation (empty id, unknown type, non-string field)."""


class InvalidRulesError(SummonError, ValueError):
    """A trigger rule payload could not be decoded or validated."""


class EncodingError(SummonError, ValueError):
    """A boundary string was not valid UTF-8."""


class InvalidHandleError(SummonError, LookupError):
    """A handle does not refer to a live engine."""


class BufferReleasedError(SummonError, RuntimeError):
    """A result buffer was read or released after it had been released."""
