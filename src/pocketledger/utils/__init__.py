"""Utility functions for pocketledger."""

from pocketledger.utils.date_parser import parse_date, parse_datetime
from pocketledger.utils.amount_parser import parse_amount, parse_rate
from pocketledger.utils.money import round_to_precision, amounts_are_equal

__all__ = ["parse_date", "parse_datetime", "parse_amount", "parse_rate", "round_to_precision", "amounts_are_equal"]
