"""Data models for the household budget domain."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

__all__ = [
    "Configuration",
    "DateBucket",
    "Member",
    "Transaction",
    "format_amount",
    "isoformat_utc",
    "parse_date",
    "parse_datetime",
]

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def isoformat_utc(dt: datetime) -> str:
    """Return an ISO 8601 string with millisecond precision and trailing Z."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    iso = dt.isoformat(timespec="milliseconds")
    # datetime.isoformat renders +00:00 for UTC; replace with the shorter Z form.
    return iso.replace("+00:00", "Z")


def parse_datetime(value: str) -> datetime:
    """Parse ISO 8601 datetime strings with optional trailing Z into UTC-aware datetime."""
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        # Treat naive datetimes as UTC to avoid accidental timezone drift.
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_date(value: str) -> date:
    """Parse a strict ``yyyy-mm-dd`` calendar date."""
    value = value.strip()
    if not DATE_PATTERN.fullmatch(value):
        raise ValueError(f"Invalid calendar date '{value}'")
    return date.fromisoformat(value)


def format_amount(amount: Decimal) -> str:
    return f"{amount:.2f}"


def _parse_stored_amount(raw: Any, field: str) -> Decimal:
    if isinstance(raw, bool):
        raise ValueError(f"{field} must be numeric")
    amount = Decimal(str(raw))
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"{field} must be a finite, non-negative number")
    return amount


def _stored_text(raw: Any, field: str) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValueError(f"{field} must be a non-empty string")
    return raw


@dataclass(frozen=True)
class Member:
    id: str
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Member":
        return cls(id=str(data["id"]), name=_stored_text(data["name"], "name"))


@dataclass(frozen=True)
class Transaction:
    id: str
    member_id: str
    amount: Decimal
    category: str
    description: str
    date: date
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the transaction to its camelCase wire form."""
        return {
            "id": self.id,
            "memberId": self.member_id,
            "amount": format_amount(self.amount),
            "category": self.category,
            "description": self.description,
            "date": self.date.isoformat(),
            "createdAt": isoformat_utc(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        """Hydrate a Transaction from JSON-native data."""
        return cls(
            id=str(data["id"]),
            member_id=str(data["memberId"]),
            amount=_parse_stored_amount(data["amount"], "amount"),
            category=_stored_text(data["category"], "category"),
            description=_stored_text(data["description"], "description"),
            date=parse_date(data["date"]),
            created_at=parse_datetime(data["createdAt"]),
        )


@dataclass(frozen=True)
class DateBucket:
    date: date
    transactions: List[Transaction] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "transactions": [transaction.to_dict() for transaction in self.transactions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, expected_date: Optional[date] = None) -> "DateBucket":
        """Hydrate a bucket, checking every transaction belongs to its date."""
        bucket_date = parse_date(data["date"])
        if expected_date is not None and bucket_date != expected_date:
            raise ValueError(f"Bucket dated {bucket_date} stored under {expected_date}")
        raw_transactions = data["transactions"]
        if not isinstance(raw_transactions, list):
            raise ValueError("Bucket transactions must be a list")
        transactions = [Transaction.from_dict(item) for item in raw_transactions]
        for transaction in transactions:
            if transaction.date != bucket_date:
                raise ValueError(
                    f"Transaction {transaction.id} dated {transaction.date} found in bucket {bucket_date}"
                )
        return cls(date=bucket_date, transactions=transactions)


@dataclass(frozen=True)
class Configuration:
    budget: Decimal
    members: List[Member]
    last_cleanup: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "budget": format_amount(self.budget),
            "members": [member.to_dict() for member in self.members],
            "lastCleanup": isoformat_utc(self.last_cleanup),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Configuration":
        raw_members = data.get("members", [])
        if not isinstance(raw_members, list):
            raise ValueError("members must be a list")
        members = [Member.from_dict(item) for item in raw_members]
        seen_ids = set()
        seen_names = set()
        for member in members:
            canonical = member.name.lower()
            if member.id in seen_ids or canonical in seen_names:
                raise ValueError(f"Duplicate member '{member.name}' ({member.id})")
            seen_ids.add(member.id)
            seen_names.add(canonical)
        return cls(
            budget=_parse_stored_amount(data.get("budget", "0"), "budget"),
            members=members,
            last_cleanup=parse_datetime(data["lastCleanup"]),
        )

    @classmethod
    def default(cls, now: datetime) -> "Configuration":
        return cls(budget=Decimal("0.00"), members=[], last_cleanup=now)

    def find_member(self, member_id: str) -> Optional[Member]:
        for member in self.members:
            if member.id == member_id:
                return member
        return None
