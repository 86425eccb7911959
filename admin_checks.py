from discord import app_commands
import discord
import logging
from typing import Callable
from config import BOT_ADMINS, MESSAGES

logger = logging.getLogger("AuctionBot.AdminChecks")


async def _is_app_owner(interaction: discord.Interaction) -> bool:
    client = interaction.client
    try:
        app_info = getattr(client, "_cached_app_info", None)
        if app_info is None:
            app_info = await client.application_info()
            setattr(client, "_cached_app_info", app_info)
    except discord.HTTPException as e:
        logger.debug(f"app_info lookup failed: {e}")
        return False
    owner = getattr(app_info, "owner", None)
    owner_id = getattr(owner, "id", None)
    return bool(owner_id) and interaction.user.id == owner_id


async def is_staff(interaction: discord.Interaction) -> bool:
    """
    True for:
      - the application owner
      - user IDs in config.BOT_ADMINS
      - guild members with Manage Messages permission
    """
    user = interaction.user

    if user.id in BOT_ADMINS:
        logger.info(f"staff_check: allowed by BOT_ADMINS (user={user.id})")
        return True

    permissions = getattr(user, "guild_permissions", None)
    if interaction.guild and permissions is not None and permissions.manage_messages:
        return True

    if await _is_app_owner(interaction):
        logger.info(f"staff_check: allowed by app owner (user={user.id})")
        return True

    logger.info(f"staff_check: DENIED for user {user.id}")
    return False


def staff_check() -> Callable:
    """app_commands check wrapping is_staff(). Failure raises CheckFailure."""
    return app_commands.check(is_staff)


def guild_only_check() -> Callable:
    async def predicate(interaction: discord.Interaction) -> bool:
        if interaction.guild is None:
            raise app_commands.NoPrivateMessage(
                "This command can only be used in a server."
            )
        return True

    return app_commands.check(predicate)


def command_error_message(error: app_commands.AppCommandError) -> str:
    """User-facing reply for a failed slash command.

    CommandOnCooldown and NoPrivateMessage are CheckFailure subclasses, so
    they are matched before the generic permission branch.
    """
    if isinstance(error, app_commands.CommandOnCooldown):
        return f"Command on cooldown. Try again in {error.retry_after:.1f}s"
    if isinstance(error, app_commands.NoPrivateMessage):
        return MESSAGES["guild_only"]
    if isinstance(error, app_commands.CheckFailure):
        return MESSAGES["no_permission"]
    return f"An error occurred: {str(error)}"
