"""
Error taxonomy shared by the store, cache, report builder and routers.

Routers never build error responses by hand: anything derived from
``SpendwiseError`` is rendered by the exception handlers registered in
``spendwise.main`` as ``{"success": false, "error": message}`` with the
class' status code.
"""
from typing import Optional


class SpendwiseError(Exception):
    status_code = 500

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ValidationFailure(SpendwiseError):
    """Malformed input. Raised before any store access."""

    status_code = 400


class NotFound(SpendwiseError):
    """Resource is absent or not owned by the caller."""

    status_code = 404


class StoreFailure(SpendwiseError):
    """The record store rejected or failed an operation."""

    status_code = 500


class CacheFailure(SpendwiseError):
    """
    The cache could not serve an operation. Only ever raised inside
    ``spendwise.db.cache``, where it is logged and turned into a miss/no-op.
    """


class ReportGenerationError(SpendwiseError):
    """Wraps whatever made a report, insight or analytics computation fail."""

    status_code = 500
