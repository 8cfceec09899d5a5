from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from wheel_engine.storage import (
    ENTRY_PREFIX,
    META_KEY,
    GiveawaySnapshot,
    GiveawayStorage,
)

POOL = {"111": 3, "222": 0, "333": 5}


@pytest.fixture
def seeded(seed_giveaway):
    return seed_giveaway("gw-1", "Gold Pass", POOL, labels={"111": "Archer Queen"})


class TestCreateGiveaway:
    def test_creates_meta_item(self, giveaway_table, storage):
        assert storage.create_giveaway("gw-1", "Gold Pass") is True
        meta = giveaway_table.items[("gw-1", META_KEY)]
        assert meta["name"] == "Gold Pass"
        assert meta["created_at"].endswith("Z")

    def test_existing_giveaway_is_not_overwritten(self, giveaway_table, seeded):
        seeded.commit_winner("gw-1", "333")

        assert seeded.create_giveaway("gw-1", "Replacement") is False

        meta = giveaway_table.items[("gw-1", META_KEY)]
        assert meta["name"] == "Gold Pass"
        assert meta["winner_id"] == "333"


class TestSnapshot:
    def test_missing_giveaway(self, storage):
        assert storage.get_snapshot("nope") is None

    def test_reads_meta_and_entries(self, seeded):
        snapshot = seeded.get_snapshot("gw-1")

        assert snapshot.name == "Gold Pass"
        assert snapshot.pool == POOL
        assert snapshot.labels == {"111": "Archer Queen"}
        assert snapshot.total_entries == 8
        assert snapshot.has_winner is False

    def test_follows_pagination(self, giveaway_table, seed_giveaway):
        giveaway_table.page_size = 2
        storage = seed_giveaway("gw-2", "Weekly", {f"u{i}": i + 1 for i in range(5)})

        snapshot = storage.get_snapshot("gw-2")

        assert len(snapshot.pool) == 5
        assert giveaway_table.query_calls == 3

    def test_skips_malformed_counts(self, giveaway_table, storage, caplog):
        storage.create_giveaway("gw-3", "Broken")
        giveaway_table.put_item(
            Item={
                "giveaway_id": "gw-3",
                "user_id": f"{ENTRY_PREFIX}999",
                "entries": "lots",
            }
        )
        storage.set_entries("gw-3", "111", 2)

        snapshot = storage.get_snapshot("gw-3")

        assert snapshot.pool == {"111": 2}
        assert "Ignoring malformed entry count for 999" in caplog.text

    def test_set_entries_overwrites(self, giveaway_table, seeded):
        seeded.set_entries("gw-1", "111", 9, display_name="Queenie")
        item = giveaway_table.items[("gw-1", f"{ENTRY_PREFIX}111")]
        assert item["entries"] == 9
        assert item["display_name"] == "Queenie"


class TestCommitWinner:
    def test_first_commit_wins(self, giveaway_table, seeded):
        assert seeded.commit_winner("gw-1", "333") is True

        snapshot = seeded.get_snapshot("gw-1")
        assert snapshot.winner_id == "333"
        assert snapshot.has_winner is True
        assert snapshot.completed_at is not None
        assert giveaway_table.items[("gw-1", META_KEY)]["completed_at"].endswith("Z")

    def test_second_commit_is_rejected(self, seeded):
        assert seeded.commit_winner("gw-1", "333") is True
        assert seeded.commit_winner("gw-1", "111") is False
        assert seeded.get_snapshot("gw-1").winner_id == "333"

    def test_commit_for_unknown_giveaway_is_rejected(self, storage):
        assert storage.commit_winner("ghost", "111") is False

    def test_other_client_errors_propagate(self, throttling_error):
        table = MagicMock()
        table.update_item.side_effect = throttling_error
        with pytest.raises(ClientError):
            GiveawayStorage(table).commit_winner("gw-1", "111")

    def test_commit_uses_conditional_update(self):
        table = MagicMock()
        GiveawayStorage(table).commit_winner("gw-1", "111")
        kwargs = table.update_item.call_args.kwargs
        assert kwargs["Key"] == {"giveaway_id": "gw-1", "user_id": META_KEY}
        assert "attribute_not_exists(winner_id)" in kwargs["ConditionExpression"]
        assert kwargs["ExpressionAttributeValues"][":winner"] == "111"


class TestClearWinner:
    def test_allows_redraw(self, seeded):
        seeded.commit_winner("gw-1", "333")

        assert seeded.clear_winner("gw-1") is True

        snapshot = seeded.get_snapshot("gw-1")
        assert snapshot.winner_id is None
        assert snapshot.completed_at is None
        assert seeded.commit_winner("gw-1", "111") is True

    def test_unknown_giveaway(self, giveaway_table, storage):
        assert storage.clear_winner("ghost") is False
        assert ("ghost", META_KEY) not in giveaway_table.items


def test_missing_table_raises():
    with pytest.raises(RuntimeError):
        GiveawayStorage(None).get_snapshot("gw-1")


def test_snapshot_helpers():
    snapshot = GiveawaySnapshot("gw", "Name", pool={"a": 2, "b": 0, "c": -1})
    assert snapshot.total_entries == 2
    assert snapshot.has_winner is False
