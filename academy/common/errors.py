"""
Error taxonomy for the academy backend.

- PaymentValidationError: bad input, raised before anything is written
- StorageError: the record store failed
- TransactionFailed: a multi-row write was aborted and rolled back

Routers map these to HTTP responses; nothing below the API layer
imports FastAPI.
"""


class AcademyError(Exception):
    pass


class PaymentValidationError(AcademyError, ValueError):
    pass


class StorageError(AcademyError):
    pass


class TransactionFailed(StorageError):
    pass
