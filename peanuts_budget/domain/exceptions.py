"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidDocumentError(DomainException):
    """Persisted ledger document is malformed or missing required collections"""

    pass


class EmptyTransactionError(DomainException):
    """A transaction must always carry at least one posting"""

    pass


class UnknownEntityError(DomainException):
    """Entity is not part of the ledger it was passed to"""

    pass
