"""DynamoDB persistence for giveaway entry pools and committed winners."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

log = logging.getLogger("wheel-engine.storage")

META_KEY = "META"
ENTRY_PREFIX = "ENTRY#"
ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now_iso() -> str:
    return datetime.now(UTC).strftime(ISO_FORMAT)


def _is_conditional_failure(exc: ClientError) -> bool:
    code = exc.response.get("Error", {}).get("Code")
    return code == "ConditionalCheckFailedException"


@dataclass(slots=True)
class GiveawaySnapshot:
    """Point-in-time copy of one giveaway's wheel inputs."""

    giveaway_id: str
    name: str
    winner_id: str | None = None
    completed_at: str | None = None
    pool: dict[str, int] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def total_entries(self) -> int:
        return sum(count for count in self.pool.values() if count > 0)

    @property
    def has_winner(self) -> bool:
        return bool(self.winner_id)


class GiveawayStorage:
    """Giveaway records keyed by ``giveaway_id`` with a ``user_id`` sort key.

    Each giveaway has a ``META`` item holding its name and winner, plus one
    ``ENTRY#<participant>`` item per participant.
    """

    def __init__(self, table) -> None:
        self._table = table

    def ensure_table(self) -> None:
        if self._table is None:
            raise RuntimeError("Giveaway table is not configured")

    def create_giveaway(self, giveaway_id: str, name: str) -> bool:
        """Store a new META item; ``False`` when the giveaway already exists."""
        self.ensure_table()
        try:
            self._table.put_item(
                Item={
                    "giveaway_id": giveaway_id,
                    "user_id": META_KEY,
                    "name": name,
                    "created_at": utc_now_iso(),
                },
                ConditionExpression="attribute_not_exists(user_id)",
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return False
            raise
        log.info("Created giveaway %s (%s)", giveaway_id, name)
        return True

    def get_snapshot(self, giveaway_id: str) -> GiveawaySnapshot | None:
        self.ensure_table()
        meta = self._table.get_item(
            Key={"giveaway_id": giveaway_id, "user_id": META_KEY}
        ).get("Item")
        if not meta:
            return None

        snapshot = GiveawaySnapshot(
            giveaway_id=giveaway_id,
            name=str(meta.get("name") or giveaway_id),
            winner_id=str(meta["winner_id"]) if meta.get("winner_id") else None,
            completed_at=meta.get("completed_at"),
        )

        query_kwargs = {
            "KeyConditionExpression": Key("giveaway_id").eq(giveaway_id)
            & Key("user_id").begins_with(ENTRY_PREFIX)
        }
        while True:
            resp = self._table.query(**query_kwargs)
            for item in resp.get("Items", []):
                participant_id = str(item["user_id"])[len(ENTRY_PREFIX) :]
                try:
                    entries = int(item.get("entries", 0))
                except (TypeError, ValueError):
                    log.warning(
                        "Ignoring malformed entry count for %s in %s",
                        participant_id,
                        giveaway_id,
                    )
                    continue
                snapshot.pool[participant_id] = entries
                display_name = item.get("display_name")
                if display_name:
                    snapshot.labels[participant_id] = str(display_name)
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            query_kwargs["ExclusiveStartKey"] = last_key
        return snapshot

    def set_entries(
        self,
        giveaway_id: str,
        participant_id: str,
        entries: int,
        *,
        display_name: str | None = None,
    ) -> None:
        self.ensure_table()
        item: dict[str, object] = {
            "giveaway_id": giveaway_id,
            "user_id": f"{ENTRY_PREFIX}{participant_id}",
            "entries": int(entries),
            "updated_at": utc_now_iso(),
        }
        if display_name:
            item["display_name"] = display_name
        self._table.put_item(Item=item)

    def commit_winner(self, giveaway_id: str, winner_id: str) -> bool:
        """Record the winner unless one was already committed.

        Returns ``False`` when another spin got there first; the caller must
        then discard its own selection.
        """
        self.ensure_table()
        try:
            self._table.update_item(
                Key={"giveaway_id": giveaway_id, "user_id": META_KEY},
                UpdateExpression="SET winner_id = :winner, completed_at = :completed",
                ConditionExpression=(
                    "attribute_exists(user_id) AND attribute_not_exists(winner_id)"
                ),
                ExpressionAttributeValues={
                    ":winner": winner_id,
                    ":completed": utc_now_iso(),
                },
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                log.warning(
                    "Giveaway %s already has a winner; discarding %s",
                    giveaway_id,
                    winner_id,
                )
                return False
            raise
        log.info("Committed winner %s for giveaway %s", winner_id, giveaway_id)
        return True

    def clear_winner(self, giveaway_id: str) -> bool:
        """Forget the committed winner; ``False`` when the giveaway is unknown."""
        self.ensure_table()
        try:
            self._table.update_item(
                Key={"giveaway_id": giveaway_id, "user_id": META_KEY},
                UpdateExpression="REMOVE winner_id, completed_at",
                ConditionExpression="attribute_exists(user_id)",
            )
        except ClientError as exc:
            if _is_conditional_failure(exc):
                return False
            raise
        log.info("Cleared winner for giveaway %s", giveaway_id)
        return True
