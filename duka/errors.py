# duka/errors.py
"""Exception types shared by the store, services and routes."""


class DukaError(Exception):
    """Base exception; carries the HTTP status the API should answer with."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(DukaError):
    status_code = 400


class ForbiddenError(DukaError):
    status_code = 403


class NotFoundError(DukaError):
    status_code = 404


class ConflictError(DukaError):
    status_code = 409


class AlreadyPaidError(ValidationError):
    """Raised when a payment is attempted against an order with no balance."""


class BalanceExceededError(ValidationError):
    """Raised when a payment would push paid + held claims past the total."""

    def __init__(self, message: str, balance_due=None):
        super().__init__(message)
        self.balance_due = balance_due


class GatewayError(DukaError):
    """Token exchange, order submission or status query against Pesapal failed."""

    status_code = 502


class StoreError(DukaError):
    status_code = 500


class SchemaMismatchError(StoreError):
    """The backing store lacks a column the write/read expected."""

    def __init__(self, message: str, table: str | None = None):
        super().__init__(message)
        self.table = table


class MissingRelationError(SchemaMismatchError):
    """A whole table is missing (e.g. order_payments not migrated yet)."""
