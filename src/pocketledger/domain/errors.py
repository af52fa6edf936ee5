"""Shared domain error messages and error types."""

from decimal import Decimal
from typing import Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class UnbalancedJournalError(ValidationError):
    """Journal debits and credits do not match in journal currency."""

    def __init__(self, imbalance: Decimal, total_debits: Decimal, total_credits: Decimal):
        self.imbalance = imbalance
        self.total_debits = total_debits
        self.total_credits = total_credits
        super().__init__(f"Unbalanced journal: {imbalance}")


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations or invalid state transitions."""


class DependencyError(DomainError):
    """Operation blocked due to dependent domain data or an external service."""


class ExchangeRateError(DependencyError):
    """Exchange rate could not be resolved."""


class RateFetchError(ExchangeRateError):
    """The rate provider could not be reached or answered badly."""


class RateHTTPError(RateFetchError):
    """The rate provider answered with a non-2xx status."""

    def __init__(self, status_code: int, reason: str):
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"Exchange rate request failed: HTTP {status_code} {reason}")


class RateContentTypeError(RateFetchError):
    """The rate provider answered with something other than JSON."""

    def __init__(self, content_type: Optional[str]):
        self.content_type = content_type
        super().__init__(
            f"Exchange rate provider returned unexpected content type '{content_type or 'unknown'}'"
        )


class RatePayloadError(RateFetchError):
    """The rate provider answered JSON without a usable rates table."""


class RateUnavailableError(ExchangeRateError):
    """No fresh, fetched or stale rate exists for a currency pair."""

    def __init__(self, from_currency: str, to_currency: str, reason: Optional[str] = None):
        self.from_currency = from_currency
        self.to_currency = to_currency
        message = f"No exchange rate available for {from_currency} -> {to_currency}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


def account_not_found(account_id: int) -> str:
    """Return message for missing account."""
    return f"Account {account_id} not found"


def journal_not_found(journal_id: int) -> str:
    """Return message for missing journal."""
    return f"Journal {journal_id} not found"


def duplicate_account_name(name: str) -> str:
    return f"Account with name '{name}' already exists"


def parent_type_mismatch(parent_name: str, parent_type: str, account_type: str) -> str:
    """Return message when a child account type differs from its parent."""
    return (
        f"Parent account '{parent_name}' is {parent_type}; "
        f"child accounts must have the same type (got {account_type})"
    )


def account_type_locked(account_id: int, transaction_count: int) -> str:
    """Return message when changing the type of an account that has transactions."""
    return (
        f"Cannot change type of account {account_id}: it has "
        f"{transaction_count} transaction{'s' if transaction_count != 1 else ''}"
    )


def account_delete_blocked(account_id: int, child_count: int) -> str:
    """Return message when account still has active child accounts."""
    return (
        f"Cannot delete account {account_id}: it has {child_count} "
        f"child account{'s' if child_count != 1 else ''}. "
        "Please move or delete them first."
    )
