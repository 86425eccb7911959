"""
Tests for the staff permission check and command error replies.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import discord
from discord import app_commands
import pytest

import admin_checks
from config import MESSAGES


def make_interaction(user_id=1, manage_messages=False, in_guild=True, owner_id=999):
    client = SimpleNamespace(
        application_info=AsyncMock(
            return_value=SimpleNamespace(owner=SimpleNamespace(id=owner_id))
        )
    )
    user = SimpleNamespace(
        id=user_id,
        guild_permissions=discord.Permissions(manage_messages=manage_messages),
    )
    return SimpleNamespace(
        user=user,
        client=client,
        guild=SimpleNamespace(id=10) if in_guild else None,
    )


@pytest.fixture(autouse=True)
def no_admins(monkeypatch):
    monkeypatch.setattr(admin_checks, "BOT_ADMINS", [])


class TestIsStaff:
    """Tests for who counts as staff."""

    def test_plain_member_denied(self):
        assert asyncio.run(admin_checks.is_staff(make_interaction())) is False

    def test_manage_messages_allowed(self):
        interaction = make_interaction(manage_messages=True)
        assert asyncio.run(admin_checks.is_staff(interaction)) is True

    def test_manage_messages_outside_guild_denied(self):
        interaction = make_interaction(manage_messages=True, in_guild=False)
        assert asyncio.run(admin_checks.is_staff(interaction)) is False

    def test_bot_admin_allowed(self, monkeypatch):
        monkeypatch.setattr(admin_checks, "BOT_ADMINS", [42])
        assert asyncio.run(admin_checks.is_staff(make_interaction(user_id=42))) is True

    def test_app_owner_allowed(self):
        interaction = make_interaction(user_id=999)
        assert asyncio.run(admin_checks.is_staff(interaction)) is True

    def test_app_info_is_cached(self):
        interaction = make_interaction(user_id=999)
        asyncio.run(admin_checks.is_staff(interaction))
        asyncio.run(admin_checks.is_staff(interaction))
        interaction.client.application_info.assert_awaited_once()


class TestCommandErrorMessage:
    """Tests for the reply text of failed slash commands."""

    def test_cooldown_gets_retry_notice(self):
        error = app_commands.CommandOnCooldown(app_commands.Cooldown(1, 2.0), 1.5)
        assert isinstance(error, app_commands.CheckFailure)
        assert admin_checks.command_error_message(error) == (
            "Command on cooldown. Try again in 1.5s"
        )

    def test_guild_only(self):
        error = app_commands.NoPrivateMessage()
        assert admin_checks.command_error_message(error) == MESSAGES["guild_only"]

    def test_failed_staff_check(self):
        error = app_commands.CheckFailure()
        assert admin_checks.command_error_message(error) == MESSAGES["no_permission"]

    def test_missing_permissions(self):
        error = app_commands.MissingPermissions(["manage_messages"])
        assert admin_checks.command_error_message(error) == MESSAGES["no_permission"]

    def test_other_errors(self):
        error = app_commands.AppCommandError("boom")
        assert admin_checks.command_error_message(error) == "An error occurred: boom"
