"""Ledger constants and enumerations."""

from decimal import Decimal
from enum import Enum


class AccountType(str, Enum):
    """Chart of accounts types."""
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class TransactionType(str, Enum):
    """Side of a journal line."""
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class JournalStatus(str, Enum):
    """Journal lifecycle status.

    ACTIVE:   Normal posted journal
    REVERSED: A reversal journal has been created for it (terminal)
    """
    ACTIVE = "ACTIVE"
    REVERSED = "REVERSED"


class JournalDisplayType(str, Enum):
    """Presentation classification, computed once when a journal is written."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"
    JOURNAL = "JOURNAL"


class EntryType(str, Enum):
    """Kinds of guided two-line entries."""
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"
    TRANSFER = "TRANSFER"


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class AuditEntityType(str, Enum):
    ACCOUNT = "account"
    JOURNAL = "journal"
    TRANSACTION = "transaction"


# Balance sheet side of the ledger. Transfers only happen between these.
BALANCE_SHEET_TYPES = frozenset({AccountType.ASSET, AccountType.LIABILITY})

# Accounts whose balance grows on DEBIT
DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE})

DEFAULT_PRECISION = 2
FALLBACK_CURRENCY = "USD"

# Rates at or below this are treated as invalid input
MIN_EXCHANGE_RATE = Decimal("0.000001")

# Decimal places kept for derived exchange rates (matches the rate column)
RATE_PLACES = 10

# Tolerance used when comparing cached and recomputed balances
BALANCE_EPSILON = Decimal("0.01")

# Currencies whose precision differs from the default when the currency
# table has no row for them.
PRECISION_OVERRIDES = {
    "JPY": 0,
    "KRW": 0,
    "KWD": 3,
    "BHD": 3,
}

# (code, symbol, name, precision) seeded into the currencies table
COMMON_CURRENCIES = [
    ("USD", "$", "US Dollar", 2),
    ("EUR", "€", "Euro", 2),
    ("GBP", "£", "British Pound", 2),
    ("JPY", "¥", "Japanese Yen", 0),
    ("CNY", "¥", "Chinese Yuan", 2),
    ("INR", "₹", "Indian Rupee", 2),
    ("AUD", "A$", "Australian Dollar", 2),
    ("CAD", "C$", "Canadian Dollar", 2),
    ("CHF", "CHF", "Swiss Franc", 2),
    ("HKD", "HK$", "Hong Kong Dollar", 2),
    ("SGD", "S$", "Singapore Dollar", 2),
    ("SEK", "kr", "Swedish Krona", 2),
    ("KRW", "₩", "South Korean Won", 0),
    ("NOK", "kr", "Norwegian Krone", 2),
    ("NZD", "NZ$", "New Zealand Dollar", 2),
    ("MXN", "$", "Mexican Peso", 2),
    ("BRL", "R$", "Brazilian Real", 2),
    ("ZAR", "R", "South African Rand", 2),
    ("KWD", "KD", "Kuwaiti Dinar", 3),
    ("BHD", "BD", "Bahraini Dinar", 3),
]

OPENING_BALANCES_ACCOUNT = "Opening Balances ({currency})"
BALANCE_CORRECTIONS_ACCOUNT = "Balance Corrections ({currency})"
