"""
Configuration for Discord Channel Auction Bot
"""

import os

# Bot token is loaded from environment variable DISCORD_TOKEN (put it in .env)
BOT_TOKEN = os.getenv("DISCORD_TOKEN", "")

# BOT ADMINS (can always run staff commands). Comma-separated env var
# Example .env:
#   BOT_ADMINS="123456789012345678,987654321098765432"

_raw_bot_admins = os.getenv("BOT_ADMINS", "").strip()
BOT_ADMINS = []
if _raw_bot_admins:
    for part in _raw_bot_admins.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            BOT_ADMINS.append(int(part))
        except ValueError:
            # skip invalid entries (non-numeric)
            pass

# Guild to sync slash commands to. Empty = global sync (slow to propagate)
_raw_guild_id = os.getenv("COMMAND_GUILD_ID", "").strip()
COMMAND_GUILD_ID = int(_raw_guild_id) if _raw_guild_id.isdigit() else None

# Storage
# =========================================
# "kv"       -> sqlite key/value table, JSON encoded records
# "document" -> sqlite table with one column per auction field
# "memory"   -> in-process only, lost on restart
AUCTION_BACKEND = os.getenv("AUCTION_BACKEND", "kv").strip().lower()
AUCTION_DB_PATH = os.getenv("AUCTION_DB_PATH", "auction.db")

# Separator used in the guild/channel storage key
KEY_SEPARATOR = "/"

# Longest item description accepted by /start
MAX_ITEM_LENGTH = 200

# File Paths (you can change)
AUCTION_EXPORT_FILE = os.getenv("AUCTION_EXPORT_FILE", "auctions_export.xlsx")
LOG_FILE = "auction_bot.log"

# Seconds a user must wait between /bid calls
BID_COOLDOWN = float(os.getenv("BID_COOLDOWN", "2.0"))

# Messages
MESSAGES = {
    "no_permission": "You need `MANAGE_MESSAGES` permissions to use that command!",
    "already_active": "There is already an active auction in this channel!",
    "no_auction": "There is no active auction in this channel!",
    "no_auctions_guild": "There are no active auctions in this server.",
    "guild_only": "This command can only be used in a server.",
    "bid_limit_set": "Bid limit set to **{amount}**.",
    "export_empty": "Nothing to export, no active auctions in this server.",
}
