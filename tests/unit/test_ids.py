"""Tests for src/utils/ids.py - ID generation utilities."""

import re
from datetime import datetime, timedelta, timezone

from src.utils.ids import (
    ACTIVE_LOCK_PREFIX,
    active_lock_key,
    new_assignment_id,
    new_message_id,
    new_notification_id,
    new_order_id,
)


class TestPrefixedIds:
    """Tests for the <prefix>-<ms>-<hex> generators."""

    def test_order_id_format(self) -> None:
        assert re.fullmatch(r"eloboost-1700000000000-[0-9a-f]{8}", new_order_id(1700000000000))

    def test_assignment_id_format(self) -> None:
        assert re.fullmatch(r"assignment-\d{13}-[0-9a-f]{8}", new_assignment_id())

    def test_notification_id_format(self) -> None:
        assert re.fullmatch(r"notif-\d{13}-[0-9a-f]{8}", new_notification_id())

    def test_ids_are_unique_within_same_millisecond(self) -> None:
        ids = {new_order_id(1700000000000) for _ in range(50)}

        assert len(ids) == 50


class TestMessageId:
    def test_message_ids_sort_by_time(self) -> None:
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)

        earlier = new_message_id(now)
        later = new_message_id(now + timedelta(seconds=1))

        assert earlier < later
        assert earlier.startswith(now.isoformat() + "#")


class TestActiveLockKey:
    def test_lock_key(self) -> None:
        assert active_lock_key("booster-1") == "ACTIVE#booster-1"
        assert active_lock_key("x").startswith(ACTIVE_LOCK_PREFIX)
