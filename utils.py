"""
Utility functions for Discord Channel Auction Bot
Contains helper functions for formatting, embeds and spreadsheet export
"""

import logging
import time
import openpyxl
import discord
from openpyxl.styles import Font, Alignment, PatternFill
from datetime import datetime, timezone
from typing import BinaryIO, List, Optional, Union

# Set up module-level logger
logger = logging.getLogger("AuctionBot.Utils")


def sanitize_csv_value(value: str) -> str:
    """Sanitize spreadsheet values to prevent formula injection attacks.

    Excel/Sheets can execute formulas starting with =, +, -, @, tab, or carriage return.
    This function prefixes such values with a single quote to prevent execution.
    """
    if not value:
        return value

    dangerous_chars = ("=", "+", "-", "@", "\t", "\r")
    if value.startswith(dangerous_chars):
        return f"'{value}"
    return value


# -----------------------------------------------------------
#  AMOUNT / TIME FORMATTERS
# -----------------------------------------------------------
def format_amount(num: Optional[float]) -> str:
    """Readable amount: thousands separators, at most 2 decimals."""
    if num is None:
        return "0"

    try:
        n = float(num)
    except (TypeError, ValueError):
        return str(num)

    if n.is_integer():
        return f"{int(n):,}"
    return f"{n:,.2f}".rstrip("0").rstrip(".")


def format_duration(milliseconds: float) -> str:
    """Format a duration like '2d 3h', '1h 5m', '4m 10s' or '42s'"""
    total_seconds = max(0, int(milliseconds // 1000))
    days, rest = divmod(total_seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)

    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def format_winner(winner: Optional[str]) -> str:
    return f"<@{winner}>" if winner else "NOBODY"


def format_timestamp(epoch_ms: int) -> str:
    return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc).strftime(
        "%Y-%m-%d %H:%M:%S UTC"
    )


# Discord embed limits
EMBED_TITLE_LIMIT = 256
EMBED_FIELD_LIMIT = 1024
EMBED_DESCRIPTION_LIMIT = 4096
# Item text per line of the /auctions list (25 lines must fit one description)
LIST_ITEM_LIMIT = 100


def truncate(text: str, limit: int) -> str:
    """Cut `text` to at most `limit` characters, marking the cut with '…'"""
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def _save_workbook_with_retry(
    wb, filepath: Union[str, BinaryIO], max_retries: int = 3, delay: float = 0.5
) -> None:
    """Save workbook with retry logic for file lock issues.

    Args:
        wb: openpyxl Workbook object
        filepath: Path or binary file object to save to
        max_retries: Maximum number of retry attempts
        delay: Delay between retries in seconds

    Raises:
        PermissionError: If file is locked after all retries
    """
    last_error = None
    for attempt in range(max_retries):
        try:
            wb.save(filepath)
            return
        except PermissionError as e:
            last_error = e
            if attempt < max_retries - 1:
                logger.warning(
                    f"Excel file locked, retrying in {delay}s... (attempt {attempt + 1}/{max_retries})"
                )
                time.sleep(delay)

    logger.error(
        f"Failed to save Excel file after {max_retries} attempts: {last_error}"
    )
    raise PermissionError(
        f"Excel file '{filepath}' is locked by another process. Please close it and try again."
    )


EXPORT_HEADERS = [
    "Guild ID",
    "Channel ID",
    "Item",
    "Current Price",
    "Bid Limit",
    "Leader",
    "Hosted By",
    "Started At",
]


class FileManager:
    """Handles file operations for the auction bot"""

    @staticmethod
    def export_auctions_to_excel(
        auctions: List, destination: Union[str, BinaryIO]
    ) -> int:
        """
        Write one row per auction into a fresh workbook saved to `destination`,
        a file path or a writable binary file object.
        Returns the number of auctions written.
        """
        wb = openpyxl.Workbook()

        header_fill = PatternFill(
            start_color="366092", end_color="366092", fill_type="solid"
        )
        header_font = Font(bold=True, color="FFFFFF")

        sheet = wb.active
        sheet.title = "Auctions"
        sheet.append(EXPORT_HEADERS)
        for cell in sheet[1]:
            cell.fill = header_fill
            cell.font = header_font
            cell.alignment = Alignment(horizontal="center")

        for auction in auctions:
            sheet.append(
                [
                    auction.guild_id,
                    auction.channel_id,
                    sanitize_csv_value(auction.item),
                    auction.price,
                    auction.bid_limit,
                    auction.winner or "",
                    auction.hosted_by or "",
                    format_timestamp(auction.started_at),
                ]
            )

        for column, width in zip("ABCDEFGH", (22, 22, 30, 14, 12, 22, 22, 24)):
            sheet.column_dimensions[column].width = width

        _save_workbook_with_retry(wb, destination)
        logger.info(f"Exported {len(auctions)} auctions")
        return len(auctions)


# -----------------------------------------------------------
# MESSAGE FORMATTER
# -----------------------------------------------------------
class MessageFormatter:

    @staticmethod
    def auction_started(auction) -> discord.Embed:
        embed = discord.Embed(title="Auction started", color=discord.Color.random())
        embed.add_field(
            name="item", value=truncate(auction.item, EMBED_FIELD_LIMIT), inline=True
        )
        embed.add_field(
            name="Starting bid", value=format_amount(auction.price), inline=True
        )
        if auction.bid_limit:
            embed.add_field(
                name="Bid limit", value=format_amount(auction.bid_limit), inline=True
            )
        return embed

    @staticmethod
    def new_bid(auction, user_tag: str) -> discord.Embed:
        embed = discord.Embed(title="New Bid!", color=discord.Color.random())
        embed.add_field(
            name="item", value=truncate(auction.item, EMBED_FIELD_LIMIT), inline=True
        )
        embed.add_field(
            name="user", value=truncate(user_tag, EMBED_FIELD_LIMIT), inline=True
        )
        embed.add_field(name="amount", value=format_amount(auction.price), inline=True)
        return embed

    @staticmethod
    def auction_ended(auction) -> discord.Embed:
        embed = discord.Embed(title="Auction ended!", color=discord.Color.random())
        embed.add_field(
            name="item", value=truncate(auction.item, EMBED_FIELD_LIMIT), inline=True
        )
        embed.add_field(
            name="ended at price", value=format_amount(auction.price), inline=True
        )
        embed.add_field(name="won by", value=format_winner(auction.winner), inline=True)
        embed.add_field(
            name="lasted", value=format_duration(auction.auction_length()), inline=True
        )
        return embed

    @staticmethod
    def auction_status(auction) -> discord.Embed:
        """Current state of a single channel auction"""
        embed = discord.Embed(
            title=truncate(f"Auction: {auction.item}", EMBED_TITLE_LIMIT),
            color=discord.Color.blue(),
        )
        embed.add_field(
            name="Current price", value=format_amount(auction.price), inline=True
        )
        embed.add_field(
            name="Leading", value=format_winner(auction.winner), inline=True
        )
        embed.add_field(
            name="Bid limit", value=format_amount(auction.bid_limit), inline=True
        )
        if auction.hosted_by:
            embed.add_field(
                name="Hosted by", value=f"<@{auction.hosted_by}>", inline=True
            )
        embed.add_field(
            name="Running for",
            value=format_duration(auction.auction_length()),
            inline=True,
        )
        return embed

    @staticmethod
    def auction_list(auctions: List) -> discord.Embed:
        lines = []
        for auction in auctions[:25]:
            lines.append(
                f"<#{auction.channel_id}> **{truncate(auction.item, LIST_ITEM_LIMIT)}** - "
                f"{format_amount(auction.price)} ({format_winner(auction.winner)})"
            )
        if len(auctions) > 25:
            lines.append(f"... and {len(auctions) - 25} more")
        return discord.Embed(
            title=f"Active Auctions ({len(auctions)})",
            description=truncate("\n".join(lines), EMBED_DESCRIPTION_LIMIT),
            color=discord.Color.blue(),
        )

    @staticmethod
    def help_embed() -> discord.Embed:
        embed = discord.Embed(title="Auction Bot Commands", color=0x00FF00)
        embed.add_field(
            name="Everyone",
            value=(
                "`/bid <amount>` - Bid on this channel's auction\n"
                "`/auction` - Show this channel's auction\n"
                "`/auctions` - List auctions in this server"
            ),
            inline=False,
        )
        embed.add_field(
            name="Staff (Manage Messages)",
            value=(
                "`/start <price> <item> [bid_limit]` - Start an auction here\n"
                "`/end` - End this channel's auction\n"
                "`/bidlimit <amount>` - Change the minimum raise\n"
                "`/export` - Download this server's auctions as Excel"
            ),
            inline=False,
        )
        return embed
