import asyncio
import datetime
import io
import logging
import os
from typing import Final

import boto3
import discord
from botocore.exceptions import BotoCoreError, ClientError
from discord import app_commands
from discord.errors import InteractionResponded

from wheel_engine import (
    AlreadyDrawnError,
    EmptyPoolError,
    GiveawayNotFoundError,
    SpinInProgressError,
    StorageError,
    VisualizationError,
    WheelEngine,
    WheelEngineError,
    env_float,
    env_int,
    read_wheel_config,
)
from wheel_engine.service import DEFAULT_TIMEOUT_SECONDS, SpinOutcome, SpinService
from wheel_engine.storage import GiveawaySnapshot, GiveawayStorage

log = logging.getLogger("wheel-bot")

TOKEN: Final[str | None] = os.getenv("DISCORD_TOKEN")
GIVEAWAY_TABLE_NAME: Final[str | None] = os.getenv("GIVEAWAY_TABLE_NAME")
AWS_REGION: Final[str] = os.getenv("AWS_REGION", "us-east-1")
WHEEL_GUILD_ID: Final[int | None] = env_int("WHEEL_GUILD_ID")
SPIN_TIMEOUT_SECONDS: Final[float | None] = env_float(
    "SPIN_TIMEOUT_SECONDS", default=DEFAULT_TIMEOUT_SECONDS
)

REQUIRED_VARS = ("DISCORD_TOKEN", "GIVEAWAY_TABLE_NAME")
TOP_PARTICIPANTS = 10

intents = discord.Intents.default()
intents.guilds = True
bot = discord.Client(intents=intents)
tree = app_commands.CommandTree(bot)

GUILD_OBJECT = discord.Object(id=WHEEL_GUILD_ID) if WHEEL_GUILD_ID is not None else None

dynamodb = boto3.resource("dynamodb", region_name=AWS_REGION)
table = dynamodb.Table(GIVEAWAY_TABLE_NAME) if GIVEAWAY_TABLE_NAME else None

giveaway_storage = GiveawayStorage(table)
spin_service = SpinService(
    giveaway_storage,
    WheelEngine(read_wheel_config()),
    timeout=SPIN_TIMEOUT_SECONDS,
)


def wheel_command(*args, **kwargs):
    """Register a wheel slash command scoped to the configured guild."""

    def decorator(func):
        command_kwargs = dict(kwargs)
        if (
            GUILD_OBJECT is not None
            and "guild" not in command_kwargs
            and "guilds" not in command_kwargs
        ):
            command_kwargs["guild"] = GUILD_OBJECT
        return tree.command(*args, **command_kwargs)(func)

    return decorator


def build_winner_embed(outcome: SpinOutcome) -> discord.Embed:
    result = outcome.result
    winner = result.winner
    embed = discord.Embed(
        title="🎉 WINNER SELECTED! 🎉",
        description=f"**{outcome.giveaway_name}** has been completed!",
        colour=discord.Colour.green(),
        timestamp=datetime.datetime.now(tz=datetime.UTC),
    )
    embed.add_field(
        name="🏆 Winner", value=f"<@{winner.participant_id}>", inline=True
    )
    embed.add_field(
        name="🎫 Winning Entries", value=f"{winner.entries} entries", inline=True
    )
    embed.add_field(
        name="📊 Final Statistics",
        value="\n".join(
            [
                f"**Total Participants:** {outcome.participant_count}",
                f"**Total Entries:** {outcome.total_entries}",
                f"**Winner's Chance:** {winner.win_probability * 100:.2f}%",
            ]
        ),
        inline=False,
    )
    embed.set_image(url=f"attachment://{attachment_name(outcome)}")
    if result.is_static:
        embed.set_footer(text=f"Giveaway ID: {outcome.giveaway_id} • static wheel")
    else:
        embed.set_footer(text=f"Giveaway ID: {outcome.giveaway_id}")
    return embed


def build_state_embed(snapshot: GiveawaySnapshot) -> discord.Embed:
    total = snapshot.total_entries
    participants = sum(1 for count in snapshot.pool.values() if count > 0)
    winner = f"<@{snapshot.winner_id}>" if snapshot.winner_id else "Not selected"
    embed = discord.Embed(
        title=f"🎡 Current Wheel State: {snapshot.name}",
        description="Showing current participants and their entries",
        colour=(
            discord.Colour.greyple() if snapshot.has_winner else discord.Colour.blue()
        ),
    )
    embed.add_field(
        name="📋 Giveaway Info",
        value="\n".join(
            [
                f"**ID:** `{snapshot.giveaway_id}`",
                f"**Winner:** {winner}",
                f"**Total Participants:** {participants}",
                f"**Total Entries:** {total}",
            ]
        ),
        inline=False,
    )

    ranked = sorted(
        ((pid, count) for pid, count in snapshot.pool.items() if count > 0),
        key=lambda item: item[1],
        reverse=True,
    )
    if ranked:
        lines = [
            f"**{index}.** <@{pid}> | {count} entries ({count / total * 100:.1f}%)"
            for index, (pid, count) in enumerate(ranked[:TOP_PARTICIPANTS], start=1)
        ]
        heading = "👥 Participants" + (
            f" (Top {TOP_PARTICIPANTS})" if len(ranked) > TOP_PARTICIPANTS else ""
        )
        embed.add_field(name=heading, value="\n".join(lines), inline=False)
    embed.set_image(url=f"attachment://wheel-state-{snapshot.giveaway_id}.gif")
    return embed


def attachment_name(outcome: SpinOutcome) -> str:
    return f"wheel-{outcome.giveaway_id}.{outcome.result.file_extension}"


async def _defer(interaction: discord.Interaction) -> None:
    try:
        await interaction.response.defer(thinking=True)
    except InteractionResponded:
        pass


async def handle_spin(
    interaction: discord.Interaction,
    giveaway_id: str,
    service: SpinService | None = None,
) -> None:
    service = service or spin_service
    await _defer(interaction)

    try:
        outcome = await service.spin(giveaway_id)
    except GiveawayNotFoundError:
        await interaction.followup.send(
            f"❌ Giveaway not found: **{giveaway_id}**", ephemeral=True
        )
        return
    except EmptyPoolError:
        await interaction.followup.send(
            f"❌ No participants with entries in **{giveaway_id}**", ephemeral=True
        )
        return
    except AlreadyDrawnError as exc:
        winner = f"<@{exc.winner_id}>" if exc.winner_id else "someone"
        await interaction.followup.send(
            f"⚠️ Giveaway **{giveaway_id}** already has a winner: {winner}",
            ephemeral=True,
        )
        return
    except SpinInProgressError:
        await interaction.followup.send(
            f"⏳ The wheel for **{giveaway_id}** is already spinning", ephemeral=True
        )
        return
    except VisualizationError as exc:
        log.exception("Wheel could not be drawn for %s: %s", giveaway_id, exc)
        await interaction.followup.send(
            f"🏆 Winner of **{giveaway_id}**: <@{exc.winner.participant_id}> "
            "(the wheel image could not be generated)"
        )
        return
    except StorageError as exc:
        log.exception("Giveaway table failure while spinning %s: %s", giveaway_id, exc)
        if exc.winner is None:
            await interaction.followup.send(
                "❌ Could not reach the giveaway table.", ephemeral=True
            )
            return
        message = (
            f"🏆 Winner of **{giveaway_id}**: <@{exc.winner.participant_id}> "
            "(the result could not be saved; please record it manually)"
        )
        if exc.result is None:
            await interaction.followup.send(message)
            return
        await interaction.followup.send(
            message,
            file=discord.File(
                io.BytesIO(exc.result.encoded_asset),
                filename=f"wheel-{giveaway_id}.{exc.result.file_extension}",
            ),
        )
        return
    except WheelEngineError as exc:
        log.exception("Failed to spin wheel for %s: %s", giveaway_id, exc)
        await interaction.followup.send("❌ Failed to spin the wheel.", ephemeral=True)
        return

    result = outcome.result
    files = [
        discord.File(
            io.BytesIO(result.encoded_asset), filename=attachment_name(outcome)
        )
    ]
    await interaction.followup.send(embed=build_winner_embed(outcome), files=files)
    if result.celebration_asset is not None:
        await interaction.followup.send(
            file=discord.File(
                io.BytesIO(result.celebration_asset),
                filename=f"wheel-{giveaway_id}-celebration.gif",
            )
        )
    log.info(
        "Giveaway %s completed; winner %s", giveaway_id, result.winner.participant_id
    )


async def handle_wheel_state(
    interaction: discord.Interaction,
    giveaway_id: str,
    service: SpinService | None = None,
) -> None:
    service = service or spin_service
    await _defer(interaction)
    try:
        snapshot, asset = await service.preview(giveaway_id)
    except GiveawayNotFoundError:
        await interaction.followup.send(
            f"❌ Giveaway not found: **{giveaway_id}**", ephemeral=True
        )
        return
    except WheelEngineError as exc:
        log.exception("Failed to render wheel state for %s: %s", giveaway_id, exc)
        await interaction.followup.send(
            "❌ Failed to render the wheel.", ephemeral=True
        )
        return

    await interaction.followup.send(
        embed=build_state_embed(snapshot),
        file=discord.File(
            io.BytesIO(asset), filename=f"wheel-state-{snapshot.giveaway_id}.gif"
        ),
    )


async def _require_admin(interaction: discord.Interaction) -> bool:
    if interaction.user.guild_permissions.administrator:
        return True
    await interaction.response.send_message(
        "This command requires administrator permissions.", ephemeral=True
    )
    return False


async def handle_create_giveaway(
    interaction: discord.Interaction,
    giveaway_id: str,
    name: str,
    storage: GiveawayStorage | None = None,
) -> None:
    storage = storage or giveaway_storage
    if not await _require_admin(interaction):
        return
    try:
        created = storage.create_giveaway(giveaway_id, name)
    except (BotoCoreError, ClientError) as exc:
        log.exception("Failed to create giveaway %s: %s", giveaway_id, exc)
        await interaction.response.send_message(
            "❌ Failed to create the giveaway.", ephemeral=True
        )
        return
    if not created:
        await interaction.response.send_message(
            f"⚠️ Giveaway **{giveaway_id}** already exists", ephemeral=True
        )
        return
    log.info("Giveaway %s created by %s", giveaway_id, interaction.user)
    await interaction.response.send_message(
        f"✅ Created giveaway **{name}** (`{giveaway_id}`)", ephemeral=True
    )


async def handle_set_entries(
    interaction: discord.Interaction,
    giveaway_id: str,
    member: discord.Member,
    entries: int,
    storage: GiveawayStorage | None = None,
) -> None:
    storage = storage or giveaway_storage
    if not await _require_admin(interaction):
        return
    if entries < 0:
        await interaction.response.send_message(
            "Entry count cannot be negative.", ephemeral=True
        )
        return
    try:
        storage.set_entries(
            giveaway_id, str(member.id), entries, display_name=member.display_name
        )
    except (BotoCoreError, ClientError) as exc:
        log.exception(
            "Failed to set entries for %s in %s: %s", member.id, giveaway_id, exc
        )
        await interaction.response.send_message(
            "❌ Failed to update entries.", ephemeral=True
        )
        return
    log.info("Set %s entries for %s in giveaway %s", entries, member.id, giveaway_id)
    await interaction.response.send_message(
        f"✅ <@{member.id}> now has {entries} entries in **{giveaway_id}**",
        ephemeral=True,
    )


async def handle_reset_winner(
    interaction: discord.Interaction,
    giveaway_id: str,
    storage: GiveawayStorage | None = None,
    service: SpinService | None = None,
) -> None:
    storage = storage or giveaway_storage
    service = service or spin_service
    if not await _require_admin(interaction):
        return
    if service.is_spinning(giveaway_id):
        await interaction.response.send_message(
            f"⏳ The wheel for **{giveaway_id}** is still spinning", ephemeral=True
        )
        return
    try:
        cleared = storage.clear_winner(giveaway_id)
    except (BotoCoreError, ClientError) as exc:
        log.exception("Failed to reset winner for %s: %s", giveaway_id, exc)
        await interaction.response.send_message(
            "❌ Failed to reset the winner.", ephemeral=True
        )
        return
    if not cleared:
        await interaction.response.send_message(
            f"❌ Giveaway not found: **{giveaway_id}**", ephemeral=True
        )
        return
    log.info("Winner of giveaway %s reset by %s", giveaway_id, interaction.user)
    await interaction.response.send_message(
        f"🔄 Winner cleared for **{giveaway_id}**; the wheel can be spun again",
        ephemeral=True,
    )


@wheel_command(name="spin", description="Spin the giveaway wheel to select a winner")
@app_commands.describe(giveaway="Giveaway ID to spin")
async def spin(interaction: discord.Interaction, giveaway: str) -> None:
    await handle_spin(interaction, giveaway)


@wheel_command(name="wheel_state", description="Show the current wheel for a giveaway")
@app_commands.describe(giveaway="Giveaway ID to show")
async def wheel_state(interaction: discord.Interaction, giveaway: str) -> None:
    await handle_wheel_state(interaction, giveaway)


@wheel_command(name="wheel_create", description="Create a wheel giveaway (Admin only)")
@app_commands.describe(giveaway="New giveaway ID", name="Name shown on the wheel")
async def wheel_create(
    interaction: discord.Interaction, giveaway: str, name: str
) -> None:
    await handle_create_giveaway(interaction, giveaway, name)


@wheel_command(
    name="wheel_entries", description="Set a member's wheel entries (Admin only)"
)
@app_commands.describe(
    giveaway="Giveaway ID", member="Participant", entries="Number of entries"
)
async def wheel_entries(
    interaction: discord.Interaction,
    giveaway: str,
    member: discord.Member,
    entries: int,
) -> None:
    await handle_set_entries(interaction, giveaway, member, entries)


@wheel_command(
    name="wheel_reset", description="Clear a giveaway winner for a redraw (Admin only)"
)
@app_commands.describe(giveaway="Giveaway ID to reset")
async def wheel_reset(interaction: discord.Interaction, giveaway: str) -> None:
    await handle_reset_winner(interaction, giveaway)


@bot.event
async def on_ready() -> None:
    if GUILD_OBJECT is not None:
        await tree.sync(guild=GUILD_OBJECT)
        log.info("Commands synced to guild %s", WHEEL_GUILD_ID)
    else:
        await tree.sync()
        log.info("Commands synced globally")
    log.info("Wheel bot ready as %s", bot.user)


async def main() -> None:
    missing = [v for v in REQUIRED_VARS if not os.getenv(v)]
    if missing:
        raise RuntimeError(f"Missing env vars: {', '.join(missing)}")

    async with bot:
        await bot.start(TOKEN)  # type: ignore[arg-type]


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
