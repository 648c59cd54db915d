"""Tests for committing records through the persistence gateway.

The gateway used here is in-memory; relative operations are resolved against
its stored documents at save time.
"""

import asyncio

import pytest

from ledger_engine.core.errors import PersistenceError
from ledger_engine.core.operations import AddOp, SetOp
from ledger_engine.core.record import UserRecord
from ledger_engine.persistence.defaults import default_user
from ledger_engine.persistence.memory import InMemoryGateway
from ledger_engine.services.user_service import UserService


class FlakyGateway:
    """Fails the first ``failures`` upserts, then delegates to an in-memory gateway."""

    def __init__(self, failures: int) -> None:
        self.inner = InMemoryGateway()
        self.failures = failures

    async def fetch_or_default(self, user_id: str) -> dict:
        return await self.inner.fetch_or_default(user_id)

    async def upsert_merge(self, user_id: str, changes) -> dict:
        if self.failures:
            self.failures -= 1
            raise PersistenceError(user_id, "connection reset")
        return await self.inner.upsert_merge(user_id, changes)


def test_end_to_end_new_user() -> None:
    """A new user gets the default document merged with pending changes."""

    gateway = InMemoryGateway()
    service = UserService(gateway=gateway)

    async def run() -> UserRecord:
        record = await service.get("U1")
        record.add_to_pocket(100).add_to_bank(40, transfer=True)
        return await record.save()

    saved = asyncio.run(run())

    assert (saved.data.pocket, saved.data.bank, saved.data.won, saved.data.lost) == (60, 40, 100, 0)
    stored = asyncio.run(gateway.fetch_or_default("U1"))
    assert stored == saved.to_plain()


def test_first_save_is_default_merged_with_changes(gateway) -> None:
    record = UserRecord.from_document(default_user("new"), gateway)
    record.update_streak(timestamp=500, streak=1).set_last_command("daily", 500)

    saved = asyncio.run(record.save())

    expected = default_user("new")
    expected["streak"] = {"time": 500, "streak": 1}
    expected["last_command"] = {"name": "daily", "time": 500}
    assert asyncio.run(gateway.fetch_or_default("new")) == expected
    assert saved.to_plain() == expected


def test_save_returns_fresh_record_and_keeps_pending_changes(gateway) -> None:
    record = UserRecord.from_document(default_user("u"), gateway)
    record.add_to_pocket(5)

    saved = asyncio.run(record.save())

    assert saved is not record
    assert saved.changes.is_empty
    assert record.changes.fields == ["pocket", "won"]


def test_save_reflects_store_not_local_snapshot(gateway) -> None:
    """Two records built from the same stale snapshot both apply their deltas."""

    service = UserService(gateway=gateway)

    async def run() -> UserRecord:
        first = await service.get("u")
        second = await service.get("u")
        first.add_to_pocket(10)
        second.add_to_pocket(15)
        await first.save()
        return await second.save()

    saved = asyncio.run(run())

    assert saved.data.pocket == 25
    assert saved.data.won == 25


def test_fetch_or_default_does_not_write(gateway) -> None:
    record = asyncio.run(UserService(gateway=gateway).get("ghost"))

    assert record.to_plain() == default_user("ghost")
    assert not gateway.has("ghost")


def test_empty_save_materializes_default(gateway) -> None:
    record = UserRecord.from_document(default_user("blank"), gateway)

    saved = asyncio.run(record.save())

    assert gateway.has("blank")
    assert saved.to_plain() == default_user("blank")


def test_failed_save_keeps_changes_for_retry() -> None:
    gateway = FlakyGateway(failures=1)
    record = UserRecord.from_document(default_user("u"), gateway)
    record.add_to_pocket(10)

    with pytest.raises(PersistenceError):
        asyncio.run(record.save())

    assert record.changes.changes == {"pocket": AddOp(amount=10), "won": AddOp(amount=10)}
    assert record.data.pocket == 10

    saved = asyncio.run(record.save())
    assert saved.data.pocket == 10


def test_relative_operation_on_corrupt_value_is_persistence_error() -> None:
    gateway = InMemoryGateway(default_factory=lambda user_id: {"id": user_id, "pocket": "lots"})

    with pytest.raises(PersistenceError):
        asyncio.run(gateway.upsert_merge("u", {"pocket": AddOp(amount=1)}))

    assert not gateway.has("u")


@pytest.mark.parametrize("patch", [{"streak": 5}, {"pocket": SetOp(value=-5)}, {"pocket": "lots"}])
def test_malformed_patch_is_rejected_before_write(gateway, patch) -> None:
    record = UserRecord.from_document(default_user("u"), gateway)
    record.add_to_pocket(10).update(patch)

    with pytest.raises(PersistenceError):
        asyncio.run(record.save())

    assert not gateway.has("u")


def test_rejected_save_leaves_stored_document_untouched(gateway) -> None:
    """A failed save must not apply its relative operations, even partly."""

    first = UserRecord.from_document(default_user("u"), gateway)
    saved = asyncio.run(first.add_to_pocket(10).save())

    saved.add_to_pocket(10).update({"streak": 5})
    with pytest.raises(PersistenceError):
        asyncio.run(saved.save())
    with pytest.raises(PersistenceError):
        asyncio.run(saved.save())

    stored = asyncio.run(gateway.fetch_or_default("u"))
    assert stored["pocket"] == 10
    assert stored["won"] == 10
    assert asyncio.run(UserService(gateway=gateway).get("u")).data.pocket == 10


def test_changing_the_id_is_rejected(gateway) -> None:
    record = UserRecord.from_document(default_user("u"), gateway)
    record.update({"id": "someone-else"})

    with pytest.raises(PersistenceError):
        asyncio.run(record.save())

    assert not gateway.has("u")
