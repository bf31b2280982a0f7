"""Error taxonomy shared by the store, selector, scorer and CLI."""


class CertBloomError(Exception):
    """Base class for every error raised by certbloom."""


class ValidationError(CertBloomError):
    """A request was malformed; raised before any store access or side effect."""

    def __init__(self, field: str | None, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}" if field else reason)


class NotFoundError(CertBloomError):
    """A referenced question, topic, user or session does not exist."""

    def __init__(self, kind: str, key):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class StoreUnavailableError(CertBloomError):
    """The database could not be reached or a query failed."""


class MalformedRecordError(CertBloomError):
    """A row read from the store is missing fields or holds invalid values."""


class DegradedSelectionWarning(UserWarning):
    """Adaptive ranking was unavailable and standard selection was used instead."""
