"""Read-only views derived from the configuration and the stored transactions.

All functions are pure: they take a snapshot and never touch persistence.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from .models import Configuration, Transaction

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

HIGH_SPENDING_THRESHOLD = Decimal("70")
OVER_BUDGET_THRESHOLD = Decimal("90")

STATUS_ON_TRACK = "on_track"
STATUS_HIGH_SPENDING = "high_spending"
STATUS_OVER_BUDGET = "over_budget"

UNKNOWN_MEMBER = "Unknown"


@dataclass(frozen=True)
class Totals:
    budget: Decimal
    total_spent: Decimal
    total_remaining: Decimal
    percentage: Decimal
    remaining_percentage: Decimal
    transaction_count: int


@dataclass(frozen=True)
class MemberSpend:
    member_id: str
    name: str
    amount: Decimal
    count: int


@dataclass(frozen=True)
class StorageStats:
    date_count: int
    transaction_count: int
    oldest_date: Optional[date]
    newest_date: Optional[date]


def totals(config: Configuration, transactions: Iterable[Transaction]) -> Totals:
    records = list(transactions)
    total_spent = sum((t.amount for t in records), start=ZERO)
    total_remaining = config.budget - total_spent
    if config.budget > 0:
        percentage = total_spent / config.budget * HUNDRED
        remaining_percentage = total_remaining / config.budget * HUNDRED
    else:
        percentage = ZERO
        remaining_percentage = ZERO
    return Totals(
        budget=config.budget,
        total_spent=total_spent,
        total_remaining=total_remaining,
        percentage=percentage,
        remaining_percentage=remaining_percentage,
        transaction_count=len(records),
    )


def spend_by_member(config: Configuration, transactions: Iterable[Transaction]) -> List[MemberSpend]:
    """Per-member spend in roster order; members without spend report zero."""
    amounts: Dict[str, Decimal] = {member.id: ZERO for member in config.members}
    counts: Dict[str, int] = {member.id: 0 for member in config.members}
    for transaction in transactions:
        if transaction.member_id not in amounts:
            continue
        amounts[transaction.member_id] += transaction.amount
        counts[transaction.member_id] += 1
    return [
        MemberSpend(
            member_id=member.id,
            name=member.name,
            amount=amounts[member.id],
            count=counts[member.id],
        )
        for member in config.members
    ]


def sorted_transactions(transactions: Iterable[Transaction]) -> List[Transaction]:
    # sorted() is stable, so equal timestamps keep their scan order.
    return sorted(transactions, key=lambda t: t.created_at, reverse=True)


def storage_stats(dates: Sequence[date], transactions: Iterable[Transaction]) -> StorageStats:
    ordered = sorted(dates)
    return StorageStats(
        date_count=len(ordered),
        transaction_count=sum(1 for _ in transactions),
        oldest_date=ordered[0] if ordered else None,
        newest_date=ordered[-1] if ordered else None,
    )


def budget_status(percentage: Decimal) -> str:
    if percentage >= OVER_BUDGET_THRESHOLD:
        return STATUS_OVER_BUDGET
    if percentage >= HIGH_SPENDING_THRESHOLD:
        return STATUS_HIGH_SPENDING
    return STATUS_ON_TRACK


def member_name(config: Configuration, member_id: str) -> str:
    member = config.find_member(member_id)
    return member.name if member else UNKNOWN_MEMBER
