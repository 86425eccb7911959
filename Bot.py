"""
Discord Channel Auction Bot - Main Application
One auction per text channel, driven by slash commands
"""

import discord
from discord import app_commands
from discord.ext import commands
import io
import os
import logging
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

from config import (
    BOT_TOKEN,
    COMMAND_GUILD_ID,
    AUCTION_BACKEND,
    AUCTION_DB_PATH,
    AUCTION_EXPORT_FILE,
    MAX_ITEM_LENGTH,
    BID_COOLDOWN,
    LOG_FILE,
    MESSAGES,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.FileHandler(LOG_FILE, encoding="utf-8"),
        logging.StreamHandler(),  # Also print to console
    ],
)
logger = logging.getLogger("AuctionBot")

from admin_checks import staff_check, guild_only_check, command_error_message
from auction_manager import AuctionManager, AuctionError
from database import open_store
from utils import MessageFormatter, FileManager, format_amount

TOKEN = BOT_TOKEN or os.getenv("DISCORD_TOKEN", "")


class AuctionBot(commands.Bot):
    """Custom bot class with auction manager and slash commands"""

    def __init__(self):
        intents = discord.Intents.default()
        intents.guilds = True
        intents.guild_messages = True

        super().__init__(command_prefix="!", intents=intents)

        self.auction_manager = AuctionManager(
            open_store(AUCTION_BACKEND, AUCTION_DB_PATH)
        )
        self.formatter = MessageFormatter()

    async def setup_hook(self):
        if COMMAND_GUILD_ID:
            guild = discord.Object(id=COMMAND_GUILD_ID)
            self.tree.copy_global_to(guild=guild)
            logger.info(f"Syncing slash commands to guild {COMMAND_GUILD_ID}...")
            await self.tree.sync(guild=guild)
        else:
            logger.info("Syncing slash commands globally...")
            await self.tree.sync()
        logger.info("Slash commands synced!")

    async def on_ready(self):
        logger.info(f"Logged in as {self.user.name} (ID: {self.user.id})")
        active = await self.auction_manager.fetch_all()
        logger.info(f"{len(active)} auctions loaded from storage. Bot is ready!")


bot = AuctionBot()


def _location(interaction: discord.Interaction):
    return str(interaction.guild.id), str(interaction.channel.id)


# ============================================================
# AUCTION COMMANDS
# ============================================================


@bot.tree.command(name="start", description="Starts an auction")
@app_commands.describe(
    price="The starting bid of the auction.",
    item="The item to be auctioned.",
    bid_limit="Minimum amount each new bid must beat the current one by.",
)
@guild_only_check()
@staff_check()
async def start_auction(
    interaction: discord.Interaction,
    price: app_commands.Range[float, 0],
    item: app_commands.Range[str, 1, MAX_ITEM_LENGTH],
    bid_limit: Optional[app_commands.Range[float, 0]] = None,
):
    guild_id, channel_id = _location(interaction)
    manager = bot.auction_manager

    if await manager.exists(guild_id, channel_id):
        await interaction.response.send_message(
            MESSAGES["already_active"], ephemeral=True
        )
        return

    try:
        auction = await manager.start(
            item=item,
            price=price,
            channel_id=channel_id,
            guild_id=guild_id,
            hosted_by=str(interaction.user.id),
            bid_limit=bid_limit or 0,
        )
    except AuctionError as e:
        await interaction.response.send_message(str(e), ephemeral=True)
        return

    await interaction.response.send_message(embed=bot.formatter.auction_started(auction))


@bot.tree.command(name="bid", description="Bids to an auction")
@app_commands.describe(amount="The Amount you're bidding to the auction")
@guild_only_check()
@app_commands.checks.cooldown(1, BID_COOLDOWN, key=lambda i: i.user.id)
async def bid(interaction: discord.Interaction, amount: float):
    guild_id, channel_id = _location(interaction)

    try:
        auction = await bot.auction_manager.place_bid(
            guild_id, channel_id, amount, str(interaction.user.id)
        )
    except AuctionError as e:
        await interaction.response.send_message(str(e), ephemeral=True)
        return

    await interaction.response.send_message(
        embed=bot.formatter.new_bid(auction, str(interaction.user))
    )


@bot.tree.command(name="end", description="Ends an auction")
@guild_only_check()
@staff_check()
async def end_auction(interaction: discord.Interaction):
    guild_id, channel_id = _location(interaction)

    auction = await bot.auction_manager.end(guild_id, channel_id)
    if auction is None:
        await interaction.response.send_message(MESSAGES["no_auction"], ephemeral=True)
        return

    await interaction.response.send_message(embed=bot.formatter.auction_ended(auction))


@bot.tree.command(name="auction", description="Show the auction running in this channel")
@guild_only_check()
async def show_auction(interaction: discord.Interaction):
    guild_id, channel_id = _location(interaction)
    auction = await bot.auction_manager.fetch(guild_id, channel_id)
    if auction is None:
        await interaction.response.send_message(MESSAGES["no_auction"], ephemeral=True)
        return
    await interaction.response.send_message(
        embed=bot.formatter.auction_status(auction), ephemeral=True
    )


@bot.tree.command(name="auctions", description="List all active auctions in this server")
@guild_only_check()
async def list_auctions(interaction: discord.Interaction):
    auctions = await bot.auction_manager.fetch_all(str(interaction.guild.id))
    if not auctions:
        await interaction.response.send_message(
            MESSAGES["no_auctions_guild"], ephemeral=True
        )
        return
    await interaction.response.send_message(embed=bot.formatter.auction_list(auctions))


@bot.tree.command(
    name="bidlimit", description="Set the minimum raise for this channel's auction"
)
@app_commands.describe(amount="New bids must beat the current price by more than this")
@guild_only_check()
@staff_check()
async def set_bid_limit(
    interaction: discord.Interaction, amount: app_commands.Range[float, 0]
):
    guild_id, channel_id = _location(interaction)
    manager = bot.auction_manager

    auction = await manager.fetch(guild_id, channel_id)
    if auction is None:
        await interaction.response.send_message(MESSAGES["no_auction"], ephemeral=True)
        return

    auction.set_bid_limit(amount)
    await manager.save(auction)
    await interaction.response.send_message(
        MESSAGES["bid_limit_set"].format(amount=format_amount(amount))
    )


@bot.tree.command(name="export", description="Export this server's auctions to Excel")
@guild_only_check()
@staff_check()
async def export_auctions(interaction: discord.Interaction):
    await interaction.response.defer(ephemeral=True)

    guild_id = str(interaction.guild.id)
    auctions = await bot.auction_manager.fetch_all(guild_id)
    if not auctions:
        await interaction.followup.send(MESSAGES["export_empty"], ephemeral=True)
        return

    buffer = io.BytesIO()
    count = FileManager.export_auctions_to_excel(auctions, buffer)
    buffer.seek(0)
    await interaction.followup.send(
        f"Exported **{count}** auctions.",
        file=discord.File(buffer, filename=f"{guild_id}_{AUCTION_EXPORT_FILE}"),
        ephemeral=True,
    )


@bot.tree.command(name="help", description="Show auction bot commands")
async def help_command(interaction: discord.Interaction):
    await interaction.response.send_message(
        embed=bot.formatter.help_embed(), ephemeral=True
    )


# ============================================================
# MISC (errors / main)
# ============================================================


@bot.tree.error
async def on_app_command_error(
    interaction: discord.Interaction, error: app_commands.AppCommandError
):
    if not isinstance(error, app_commands.CheckFailure):
        logger.error(f"Command error: {error}", exc_info=error)
    error_msg = command_error_message(error)

    try:
        if not interaction.response.is_done():
            await interaction.response.send_message(error_msg, ephemeral=True)
        else:
            await interaction.followup.send(error_msg, ephemeral=True)
    except discord.HTTPException:
        logger.error(f"Could not send error message to user: {error_msg}")


if __name__ == "__main__":
    if not TOKEN:
        logger.critical(
            "Please set your bot token in DISCORD_TOKEN environment variable or .env"
        )
    else:
        logger.info("Starting Discord Channel Auction Bot...")
        bot.run(TOKEN)
