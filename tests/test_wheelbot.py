import os
from unittest import mock
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
from discord.errors import InteractionResponded

import wheelbot
from wheel_engine import (
    AlreadyDrawnError,
    EmptyPoolError,
    GiveawayNotFoundError,
    RenderError,
    SpinInProgressError,
    StorageError,
    VisualizationError,
    WheelEngine,
)
from wheel_engine.models import AnimationResult, AnimationStats, WinnerRecord
from wheel_engine.service import SpinOutcome, SpinService
from wheel_engine.storage import GiveawaySnapshot

WINNER = WinnerRecord(
    participant_id="222",
    label="Hog Rider",
    entries=3,
    fill_color="#0000FF",
    win_probability=0.75,
)


def make_outcome(*, static=False, celebration=None) -> SpinOutcome:
    result = AnimationResult(
        encoded_asset=b"\x89PNG..." if static else b"GIF89a...",
        winner=WINNER,
        stats=AnimationStats(2, 4, 0 if static else 100, 0 if static else 50),
        media_type="image/png" if static else "image/gif",
        is_static=static,
        celebration_asset=celebration,
    )
    return SpinOutcome(
        giveaway_id="gw-1",
        giveaway_name="Gold Pass",
        participant_count=2,
        total_entries=4,
        result=result,
    )


def make_interaction() -> MagicMock:
    interaction = MagicMock()
    interaction.response.defer = AsyncMock()
    interaction.followup.send = AsyncMock()
    return interaction


def make_service(**kwargs) -> MagicMock:
    service = MagicMock()
    service.spin = AsyncMock(**kwargs)
    service.preview = AsyncMock(**kwargs)
    return service


class TestEmbeds:
    def test_winner_embed(self):
        embed = wheelbot.build_winner_embed(make_outcome())

        fields = {field.name: field.value for field in embed.fields}
        assert fields["🏆 Winner"] == "<@222>"
        assert fields["🎫 Winning Entries"] == "3 entries"
        assert "**Winner's Chance:** 75.00%" in fields["📊 Final Statistics"]
        assert embed.image.url == "attachment://wheel-gw-1.gif"
        assert embed.footer.text == "Giveaway ID: gw-1"

    def test_static_winner_embed(self):
        embed = wheelbot.build_winner_embed(make_outcome(static=True))
        assert embed.image.url == "attachment://wheel-gw-1.png"
        assert "static wheel" in embed.footer.text

    def test_state_embed_ranks_top_participants(self):
        pool = {str(i): i for i in range(15)}
        snapshot = GiveawaySnapshot("gw-1", "Gold Pass", pool=pool)

        embed = wheelbot.build_state_embed(snapshot)

        fields = {field.name: field.value for field in embed.fields}
        ranked = fields["👥 Participants (Top 10)"].splitlines()
        assert len(ranked) == 10
        assert ranked[0].startswith("**1.** <@14> | 14 entries")
        assert "**Total Participants:** 14" in fields["📋 Giveaway Info"]
        assert "Not selected" in fields["📋 Giveaway Info"]

    def test_state_embed_without_entries(self):
        snapshot = GiveawaySnapshot("gw-1", "Gold Pass", winner_id="9")
        embed = wheelbot.build_state_embed(snapshot)
        assert [field.name for field in embed.fields] == ["📋 Giveaway Info"]
        assert "<@9>" in embed.fields[0].value


class TestHandleSpin:
    @pytest.mark.asyncio
    async def test_success_sends_embed_and_file(self):
        interaction = make_interaction()
        service = make_service(return_value=make_outcome())

        await wheelbot.handle_spin(interaction, "gw-1", service)

        interaction.response.defer.assert_awaited_once_with(thinking=True)
        service.spin.assert_awaited_once_with("gw-1")
        kwargs = interaction.followup.send.await_args.kwargs
        assert kwargs["embed"].title == "🎉 WINNER SELECTED! 🎉"
        (attachment,) = kwargs["files"]
        assert isinstance(attachment, discord.File)
        assert attachment.filename == "wheel-gw-1.gif"

    @pytest.mark.asyncio
    async def test_split_sends_celebration_loop(self):
        interaction = make_interaction()
        service = make_service(return_value=make_outcome(celebration=b"GIF89a-loop"))

        await wheelbot.handle_spin(interaction, "gw-1", service)

        assert interaction.followup.send.await_count == 2
        second = interaction.followup.send.await_args_list[1].kwargs
        assert second["file"].filename == "wheel-gw-1-celebration.gif"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, expected",
        [
            (GiveawayNotFoundError("missing"), "Giveaway not found"),
            (EmptyPoolError("empty"), "No participants"),
            (AlreadyDrawnError("gw-1", "333"), "already has a winner: <@333>"),
            (AlreadyDrawnError("gw-1"), "already has a winner: someone"),
            (SpinInProgressError("busy"), "already spinning"),
            (RenderError("unexpected"), "Failed to spin the wheel"),
            (StorageError("table down"), "Could not reach the giveaway table"),
        ],
    )
    async def test_errors_reply_ephemerally(self, error, expected):
        interaction = make_interaction()
        service = make_service(side_effect=error)

        await wheelbot.handle_spin(interaction, "gw-1", service)

        args, kwargs = interaction.followup.send.await_args
        assert expected in args[0]
        assert kwargs["ephemeral"] is True

    @pytest.mark.asyncio
    async def test_visualization_failure_still_announces_winner(self):
        interaction = make_interaction()
        service = make_service(side_effect=VisualizationError("no image", WINNER))

        await wheelbot.handle_spin(interaction, "gw-1", service)

        args, kwargs = interaction.followup.send.await_args
        assert "<@222>" in args[0]
        assert "ephemeral" not in kwargs

    @pytest.mark.asyncio
    async def test_unsaved_winner_is_still_announced(
        self, giveaway_table, seed_giveaway, fast_config, throttling_error, caplog
    ):
        storage = seed_giveaway("gw-1", "Gold Pass", {"111": 1, "222": 3})
        giveaway_table.update_error = throttling_error
        service = SpinService(storage, WheelEngine(fast_config))
        interaction = make_interaction()

        await wheelbot.handle_spin(interaction, "gw-1", service)

        interaction.followup.send.assert_awaited_once()
        args, kwargs = interaction.followup.send.await_args
        assert "could not be saved" in args[0]
        assert any(f"<@{pid}>" in args[0] for pid in ("111", "222"))
        assert "ephemeral" not in kwargs
        assert kwargs["file"].filename == "wheel-gw-1.gif"
        assert "Giveaway table failure while spinning gw-1" in caplog.text
        assert storage.get_snapshot("gw-1").winner_id is None

    @pytest.mark.asyncio
    async def test_unsaved_winner_without_image(self):
        interaction = make_interaction()
        service = make_service(side_effect=StorageError("throttled", winner=WINNER))

        await wheelbot.handle_spin(interaction, "gw-1", service)

        args, kwargs = interaction.followup.send.await_args
        assert "<@222>" in args[0]
        assert kwargs == {}

    @pytest.mark.asyncio
    async def test_already_deferred_interaction(self):
        interaction = make_interaction()
        interaction.response.defer.side_effect = InteractionResponded(interaction)
        service = make_service(return_value=make_outcome())

        await wheelbot.handle_spin(interaction, "gw-1", service)

        interaction.followup.send.assert_awaited_once()


class TestHandleWheelState:
    @pytest.mark.asyncio
    async def test_sends_preview(self):
        interaction = make_interaction()
        snapshot = GiveawaySnapshot("gw-1", "Gold Pass", pool={"111": 2})
        service = make_service(return_value=(snapshot, b"GIF89a..."))

        await wheelbot.handle_wheel_state(interaction, "gw-1", service)

        kwargs = interaction.followup.send.await_args.kwargs
        assert kwargs["embed"].title == "🎡 Current Wheel State: Gold Pass"
        assert kwargs["file"].filename == "wheel-state-gw-1.gif"

    @pytest.mark.asyncio
    async def test_unknown_giveaway(self):
        interaction = make_interaction()
        service = make_service(side_effect=GiveawayNotFoundError("missing"))

        await wheelbot.handle_wheel_state(interaction, "gw-1", service)

        args, kwargs = interaction.followup.send.await_args
        assert "Giveaway not found" in args[0]
        assert kwargs["ephemeral"] is True


def make_admin_interaction(*, admin: bool = True) -> MagicMock:
    interaction = MagicMock()
    interaction.user.guild_permissions.administrator = admin
    interaction.response.send_message = AsyncMock()
    return interaction


def make_member(member_id: int = 555, name: str = "Barbarian") -> MagicMock:
    member = MagicMock()
    member.id = member_id
    member.display_name = name
    return member


class TestAdminCommands:
    @pytest.mark.asyncio
    async def test_non_admin_is_refused(self, storage):
        interaction = make_admin_interaction(admin=False)

        await wheelbot.handle_create_giveaway(interaction, "gw-1", "Gold", storage)

        args, kwargs = interaction.response.send_message.await_args
        assert "administrator" in args[0]
        assert kwargs["ephemeral"] is True
        assert storage.get_snapshot("gw-1") is None

    @pytest.mark.asyncio
    async def test_create_giveaway(self, storage):
        interaction = make_admin_interaction()

        await wheelbot.handle_create_giveaway(interaction, "gw-1", "Gold", storage)

        args, _ = interaction.response.send_message.await_args
        assert "Created giveaway **Gold**" in args[0]
        assert storage.get_snapshot("gw-1").name == "Gold"

    @pytest.mark.asyncio
    async def test_create_existing_giveaway(self, seed_giveaway):
        storage = seed_giveaway("gw-1", "Gold", {"111": 2})
        interaction = make_admin_interaction()

        await wheelbot.handle_create_giveaway(interaction, "gw-1", "Other", storage)

        args, _ = interaction.response.send_message.await_args
        assert "already exists" in args[0]
        assert storage.get_snapshot("gw-1").name == "Gold"

    @pytest.mark.asyncio
    async def test_create_table_failure(self, throttling_error, caplog):
        storage = MagicMock()
        storage.create_giveaway.side_effect = throttling_error
        interaction = make_admin_interaction()

        await wheelbot.handle_create_giveaway(interaction, "gw-1", "Gold", storage)

        args, _ = interaction.response.send_message.await_args
        assert "Failed to create the giveaway" in args[0]
        assert "Failed to create giveaway gw-1" in caplog.text

    @pytest.mark.asyncio
    async def test_set_entries(self, seed_giveaway):
        storage = seed_giveaway("gw-1", "Gold", {})
        interaction = make_admin_interaction()

        await wheelbot.handle_set_entries(
            interaction, "gw-1", make_member(), 7, storage
        )

        snapshot = storage.get_snapshot("gw-1")
        assert snapshot.pool == {"555": 7}
        assert snapshot.labels == {"555": "Barbarian"}
        args, _ = interaction.response.send_message.await_args
        assert "<@555> now has 7 entries" in args[0]

    @pytest.mark.asyncio
    async def test_negative_entries_rejected(self, seed_giveaway):
        storage = seed_giveaway("gw-1", "Gold", {})
        interaction = make_admin_interaction()

        await wheelbot.handle_set_entries(
            interaction, "gw-1", make_member(), -1, storage
        )

        assert storage.get_snapshot("gw-1").pool == {}
        args, _ = interaction.response.send_message.await_args
        assert "cannot be negative" in args[0]

    @pytest.mark.asyncio
    async def test_reset_winner(self, seed_giveaway):
        storage = seed_giveaway("gw-1", "Gold", {"111": 2})
        storage.commit_winner("gw-1", "111")
        service = MagicMock()
        service.is_spinning.return_value = False
        interaction = make_admin_interaction()

        await wheelbot.handle_reset_winner(interaction, "gw-1", storage, service)

        assert storage.get_snapshot("gw-1").winner_id is None
        args, _ = interaction.response.send_message.await_args
        assert "Winner cleared" in args[0]

    @pytest.mark.asyncio
    async def test_reset_while_spinning(self, seed_giveaway):
        storage = seed_giveaway("gw-1", "Gold", {"111": 2})
        storage.commit_winner("gw-1", "111")
        service = MagicMock()
        service.is_spinning.return_value = True
        interaction = make_admin_interaction()

        await wheelbot.handle_reset_winner(interaction, "gw-1", storage, service)

        assert storage.get_snapshot("gw-1").winner_id == "111"
        args, _ = interaction.response.send_message.await_args
        assert "still spinning" in args[0]

    @pytest.mark.asyncio
    async def test_reset_unknown_giveaway(self, storage):
        service = MagicMock()
        service.is_spinning.return_value = False
        interaction = make_admin_interaction()

        await wheelbot.handle_reset_winner(interaction, "ghost", storage, service)

        args, _ = interaction.response.send_message.await_args
        assert "Giveaway not found" in args[0]


@pytest.mark.asyncio
async def test_main_requires_environment():
    with mock.patch.dict(os.environ, {}, clear=True):
        with pytest.raises(RuntimeError, match="DISCORD_TOKEN"):
            await wheelbot.main()
