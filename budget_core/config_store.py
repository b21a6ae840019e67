"""Singleton configuration record: budget, members and cleanup bookkeeping."""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import datetime, timezone
from decimal import InvalidOperation
from typing import Callable, Optional

from .exceptions import ConflictError, CorruptRecordError
from .models import Configuration, Member
from .storage import KeyValueBackend
from .store import BucketStore
from .validators import new_record_id, parse_budget, validate_required_str

logger = logging.getLogger(__name__)

CONFIG_KEY = "budgetConfig"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ConfigStore:
    """Reads and writes the single configuration record."""

    def __init__(
        self,
        backend: KeyValueBackend,
        buckets: BucketStore,
        clock: Optional[Clock] = None,
    ) -> None:
        self._backend = backend
        self._buckets = buckets
        self._clock = clock or utc_now

    def load(self) -> Configuration:
        """Return the configuration, creating and persisting defaults if absent."""
        raw = self._backend.get(CONFIG_KEY)
        if raw is None:
            config = Configuration.default(self._clock())
            self.save(config)
            return config
        try:
            return self._parse(raw)
        except CorruptRecordError as exc:
            # Keep the bad record on disk until the next explicit save.
            logger.warning("Falling back to default configuration: %s", exc)
            return Configuration.default(self._clock())

    def save(self, config: Configuration) -> None:
        # All fields go out in a single write.
        self._backend.set(CONFIG_KEY, json.dumps(config.to_dict()))

    def add_member(self, name: object) -> Member:
        member_name = validate_required_str(name, "name", 50)
        config = self.load()
        canonical = member_name.lower()
        if any(member.name.lower() == canonical for member in config.members):
            raise ConflictError(f"Member '{member_name}' already exists")
        member = Member(id=new_record_id(self._clock()), name=member_name)
        self.save(replace(config, members=[*config.members, member]))
        return member

    def remove_member(self, member_id: str) -> Optional[Member]:
        """Remove a member and every transaction they recorded.

        Unknown ids are ignored and return None.
        """
        config = self.load()
        member = config.find_member(member_id)
        if member is None:
            return None
        self.save(replace(config, members=[m for m in config.members if m.id != member_id]))
        removed = self._buckets.remove_by_member(member_id)
        logger.info("Removed member %s and %d transaction(s)", member_id, removed)
        return member

    def set_budget(self, amount: object) -> Configuration:
        budget = parse_budget(amount)
        config = replace(self.load(), budget=budget)
        self.save(config)
        return config

    def mark_cleanup(self, timestamp: datetime) -> Configuration:
        config = replace(self.load(), last_cleanup=timestamp)
        self.save(config)
        return config

    def reset(self) -> Configuration:
        config = Configuration.default(self._clock())
        self.save(config)
        return config

    def _parse(self, raw: str) -> Configuration:
        try:
            payload = json.loads(raw)
            if not isinstance(payload, dict):
                raise ValueError("Expected an object payload")
            config = Configuration.from_dict(payload)
        except (ValueError, KeyError, TypeError, AttributeError, InvalidOperation) as exc:
            raise CorruptRecordError(f"Corrupted configuration in {CONFIG_KEY}: {exc}") from exc
        return config
