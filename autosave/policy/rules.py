"""
Autosave Rules

Pure decision functions. None of them touch the ledger, so they can be
tested (and reasoned about) without a network.
"""

from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Union

from autosave.models.ledger import Transaction


CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def matching_keyword(
    transaction: Transaction,
    exclude_keywords: Iterable[str],
) -> Optional[str]:
    """
    Return the first exclude keyword equal to one of the transaction's tags.

    Matching is exact after trimming and lower-casing both sides. Only
    tags are looked at, never the description.
    """
    keywords = {}
    for keyword in exclude_keywords:
        normalized = keyword.strip().lower()
        if normalized:
            keywords.setdefault(normalized, keyword.strip())

    if not keywords:
        return None

    for tag in transaction.tags:
        normalized = tag.strip().lower()
        if normalized and normalized in keywords:
            return keywords[normalized]
    return None


def is_excluded(transaction: Transaction, exclude_keywords: Iterable[str]) -> bool:
    return matching_keyword(transaction, exclude_keywords) is not None


def compute_delta(amount: Number, unit: Number) -> Decimal:
    """
    Amount needed to round `amount` up to the next multiple of `unit`.

    delta = round(ceil(amount / unit) * unit - amount, 2), half-up.
    A unit of zero or less, an amount less than a cent above a multiple,
    or a sub-cent result give 0, which means "nothing to save".
    """
    unit = _to_decimal(unit)
    if unit <= 0:
        return ZERO

    amount = _to_decimal(amount)
    if 0 < amount % unit < CENT:
        return ZERO

    rounded = (amount / unit).to_integral_value(rounding=ROUND_CEILING) * unit
    delta = (rounded - amount).quantize(CENT, rounding=ROUND_HALF_UP)

    if delta < CENT:
        return ZERO
    return delta


def has_sufficient_balance(
    balance_after: Optional[Number],
    min_balance: Number,
) -> bool:
    """
    Balance after the withdrawal must be strictly above the floor.

    An unknown balance never blocks.
    """
    if balance_after is None:
        return True
    return _to_decimal(balance_after) > _to_decimal(min_balance)
