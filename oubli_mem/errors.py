# oubli_mem/errors.py

class OubliError(Exception):
    """Base class for errors raised inside the storage layer."""


class PersistenceDecodeError(OubliError):
    """Stored payload is missing, malformed, or of an unknown schema version."""


class PersistenceWriteError(OubliError):
    """The durable layer refused a write (quota, closed connection, I/O)."""
