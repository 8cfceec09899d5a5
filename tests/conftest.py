from __future__ import annotations

import pytest
from botocore.exceptions import ClientError

from wheel_engine.config import WheelConfig
from wheel_engine.storage import META_KEY, GiveawayStorage


def _conditional_check_failed(operation: str) -> ClientError:
    return ClientError(
        {
            "Error": {
                "Code": "ConditionalCheckFailedException",
                "Message": "The conditional request failed",
            }
        },
        operation,
    )


@pytest.fixture
def throttling_error() -> ClientError:
    return ClientError(
        {
            "Error": {
                "Code": "ProvisionedThroughputExceededException",
                "Message": "Rate of requests exceeds the allowed throughput",
            }
        },
        "UpdateItem",
    )


class FakeGiveawayTable:
    """In-memory stand-in for the giveaway DynamoDB table."""

    def __init__(self, page_size: int = 100) -> None:
        self.items: dict[tuple[str, str], dict[str, object]] = {}
        self.page_size = page_size
        self.query_calls = 0
        self.update_error: Exception | None = None

    def get_item(self, *, Key):
        item = self.items.get((Key["giveaway_id"], Key["user_id"]))
        return {"Item": dict(item)} if item is not None else {}

    def put_item(self, *, Item, ConditionExpression=None):
        key = (Item["giveaway_id"], Item["user_id"])
        if ConditionExpression is not None and key in self.items:
            raise _conditional_check_failed("PutItem")
        self.items[key] = dict(Item)

    def query(self, *, KeyConditionExpression, ExclusiveStartKey=None, **_kwargs):
        self.query_calls += 1
        pk_value = None
        sk_prefix = ""
        for condition in KeyConditionExpression._values:  # type: ignore[attr-defined]
            key, value = condition._values  # type: ignore[attr-defined]
            if key.name == "giveaway_id":
                pk_value = value
            elif key.name == "user_id":
                sk_prefix = value
        matching = [
            key
            for key in sorted(self.items)
            if key[0] == pk_value and key[1].startswith(sk_prefix)
        ]
        if ExclusiveStartKey is not None:
            start = (ExclusiveStartKey["giveaway_id"], ExclusiveStartKey["user_id"])
            matching = [key for key in matching if key > start]
        page = matching[: self.page_size]
        response: dict[str, object] = {
            "Items": [dict(self.items[key]) for key in page],
            "Count": len(page),
        }
        if len(matching) > self.page_size:
            last = page[-1]
            response["LastEvaluatedKey"] = {"giveaway_id": last[0], "user_id": last[1]}
        return response

    def update_item(
        self,
        *,
        Key,
        UpdateExpression,
        ConditionExpression=None,
        ExpressionAttributeValues=None,
    ):
        if self.update_error is not None:
            raise self.update_error
        item_key = (Key["giveaway_id"], Key["user_id"])
        item = self.items.get(item_key)
        condition = ConditionExpression or ""
        if "attribute_exists(user_id)" in condition and item is None:
            raise _conditional_check_failed("UpdateItem")
        if "attribute_not_exists(winner_id)" in condition and "winner_id" in item:
            raise _conditional_check_failed("UpdateItem")
        if item is None:
            item = {"giveaway_id": item_key[0], "user_id": item_key[1]}
            self.items[item_key] = item

        if UpdateExpression.startswith("SET"):
            values = ExpressionAttributeValues or {}
            item["winner_id"] = values[":winner"]
            item["completed_at"] = values[":completed"]
        elif UpdateExpression.startswith("REMOVE"):
            item.pop("winner_id", None)
            item.pop("completed_at", None)

    def set_winner(self, giveaway_id: str, winner_id: str) -> None:
        self.items[(giveaway_id, META_KEY)]["winner_id"] = winner_id


@pytest.fixture
def giveaway_table() -> FakeGiveawayTable:
    return FakeGiveawayTable()


@pytest.fixture
def storage(giveaway_table) -> GiveawayStorage:
    return GiveawayStorage(giveaway_table)


@pytest.fixture
def seed_giveaway(storage):
    """Create a giveaway and store one entry item per participant."""

    def seed(giveaway_id, name, pool, labels=None):
        storage.create_giveaway(giveaway_id, name)
        labels = labels or {}
        for participant_id, entries in pool.items():
            storage.set_entries(
                giveaway_id,
                participant_id,
                entries,
                display_name=labels.get(participant_id),
            )
        return storage

    return seed


@pytest.fixture
def fast_config() -> WheelConfig:
    """Small, quick-to-render wheel settings."""
    return WheelConfig(
        wheel_size=120,
        spin_duration_frames=6,
        celebration_duration_frames=4,
        celebration_repeats=2,
        max_frames=30,
        render_workers=2,
    )
