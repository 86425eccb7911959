"""
Tests for formatting helpers, embeds and the Excel export.
"""

import io

import openpyxl
import pytest

from auction_manager import Auction
from config import MAX_ITEM_LENGTH
from utils import (
    EMBED_DESCRIPTION_LIMIT,
    EMBED_FIELD_LIMIT,
    EMBED_TITLE_LIMIT,
    EXPORT_HEADERS,
    FileManager,
    MessageFormatter,
    format_amount,
    format_duration,
    format_winner,
    sanitize_csv_value,
    truncate,
)


@pytest.fixture
def auction():
    return Auction(
        guild_id="g1",
        channel_id="c1",
        item="Sword",
        price=1500,
        hosted_by="u1",
        started_at=1700000000000,
        winner="u2",
        bid_limit=50,
    )


class TestFormatters:
    """Tests for plain text formatting."""

    @pytest.mark.parametrize(
        "value,expected",
        [(None, "0"), (0, "0"), (999, "999"), (1500, "1,500"), (1500.0, "1,500"), (12.5, "12.5"), (3.333, "3.33")],
    )
    def test_format_amount(self, value, expected):
        assert format_amount(value) == expected

    @pytest.mark.parametrize(
        "ms,expected",
        [
            (0, "0s"),
            (-5000, "0s"),
            (42_000, "42s"),
            (250_000, "4m 10s"),
            (3_900_000, "1h 5m"),
            (2 * 86_400_000 + 3 * 3_600_000, "2d 3h"),
        ],
    )
    def test_format_duration(self, ms, expected):
        assert format_duration(ms) == expected

    def test_format_winner(self):
        assert format_winner("") == "NOBODY"
        assert format_winner(None) == "NOBODY"
        assert format_winner("123") == "<@123>"

    def test_truncate(self):
        assert truncate("Sword", 5) == "Sword"
        assert truncate("Swords", 5) == "Swor…"
        assert len(truncate("x" * 2000, EMBED_FIELD_LIMIT)) == EMBED_FIELD_LIMIT

    @pytest.mark.parametrize("value", ["=SUM(A1)", "+1", "-1", "@cmd"])
    def test_sanitize_formula(self, value):
        assert sanitize_csv_value(value) == f"'{value}"

    def test_sanitize_plain(self):
        assert sanitize_csv_value("Sword") == "Sword"
        assert sanitize_csv_value("") == ""


class TestMessageFormatter:
    """Tests for the embeds sent in reply to commands."""

    @staticmethod
    def fields(embed):
        return {f.name: f.value for f in embed.fields}

    def test_started(self, auction):
        embed = MessageFormatter.auction_started(auction)
        assert embed.title == "Auction started"
        assert self.fields(embed) == {"item": "Sword", "Starting bid": "1,500", "Bid limit": "50"}

    def test_started_without_limit_hides_it(self, auction):
        auction.set_bid_limit(0)
        assert "Bid limit" not in self.fields(MessageFormatter.auction_started(auction))

    def test_new_bid(self, auction):
        embed = MessageFormatter.new_bid(auction, "someone#0001")
        assert embed.title == "New Bid!"
        assert self.fields(embed) == {"item": "Sword", "user": "someone#0001", "amount": "1,500"}

    def test_ended_with_winner(self, auction):
        fields = self.fields(MessageFormatter.auction_ended(auction))
        assert fields["won by"] == "<@u2>"
        assert fields["ended at price"] == "1,500"

    def test_ended_without_winner(self, auction):
        auction.set_winner("")
        fields = self.fields(MessageFormatter.auction_ended(auction))
        assert fields["won by"] == "NOBODY"

    def test_status(self, auction):
        embed = MessageFormatter.auction_status(auction)
        assert embed.title == "Auction: Sword"
        fields = self.fields(embed)
        assert fields["Leading"] == "<@u2>"
        assert fields["Hosted by"] == "<@u1>"

    def test_list(self, auction):
        embed = MessageFormatter.auction_list([auction])
        assert embed.title == "Active Auctions (1)"
        assert "<#c1>" in embed.description
        assert "**Sword**" in embed.description

    @staticmethod
    def assert_within_limits(embed):
        assert len(embed.title or "") <= EMBED_TITLE_LIMIT
        assert len(embed.description or "") <= EMBED_DESCRIPTION_LIMIT
        for field in embed.fields:
            assert len(field.value) <= EMBED_FIELD_LIMIT
        assert len(embed) <= 6000

    def test_long_item_fits_every_embed(self, auction):
        auction.set_item("x" * 1100)
        self.assert_within_limits(MessageFormatter.auction_started(auction))
        self.assert_within_limits(MessageFormatter.new_bid(auction, "someone#0001"))
        self.assert_within_limits(MessageFormatter.auction_ended(auction))
        status = MessageFormatter.auction_status(auction)
        self.assert_within_limits(status)
        assert status.title.endswith("…")

    def test_long_items_fit_full_list(self):
        auctions = [
            Auction(guild_id="g1", channel_id=str(10**17 + i), item="y" * 1100, price=10**9)
            for i in range(30)
        ]
        embed = MessageFormatter.auction_list(auctions)
        self.assert_within_limits(embed)
        assert embed.description.endswith("... and 5 more")

    def test_longest_accepted_item_is_not_cut(self, auction):
        auction.set_item("z" * MAX_ITEM_LENGTH)
        assert MessageFormatter.auction_status(auction).title == f"Auction: {auction.item}"
        assert self.fields(MessageFormatter.auction_started(auction))["item"] == auction.item

    def test_help_mentions_commands(self):
        text = " ".join(f.value for f in MessageFormatter.help_embed().fields)
        for command in ("/bid", "/start", "/end", "/export"):
            assert command in text


class TestExport:
    """Tests for the Excel export."""

    def test_export_rows(self, auction, tmp_path):
        other = Auction(guild_id="g1", channel_id="c2", item="=cmd", price=3)
        path = str(tmp_path / "export.xlsx")

        assert FileManager.export_auctions_to_excel([auction, other], path) == 2

        sheet = openpyxl.load_workbook(path)["Auctions"]
        rows = list(sheet.iter_rows(values_only=True))
        assert list(rows[0]) == EXPORT_HEADERS
        assert rows[1][:7] == ("g1", "c1", "Sword", 1500, 50, "u2", "u1")
        assert rows[1][7].endswith("UTC")
        assert rows[2][2] == "'=cmd"
        assert rows[2][5] is None or rows[2][5] == ""

    def test_export_to_buffer(self, auction):
        buffer = io.BytesIO()
        assert FileManager.export_auctions_to_excel([auction], buffer) == 1

        buffer.seek(0)
        rows = list(openpyxl.load_workbook(buffer)["Auctions"].iter_rows(values_only=True))
        assert list(rows[0]) == EXPORT_HEADERS
        assert rows[1][2] == "Sword"

    def test_export_empty(self, tmp_path):
        path = str(tmp_path / "empty.xlsx")
        assert FileManager.export_auctions_to_excel([], path) == 0
        rows = list(openpyxl.load_workbook(path)["Auctions"].iter_rows(values_only=True))
        assert len(rows) == 1
