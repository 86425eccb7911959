"""
Auction Manager Module
Channel auctions: the Auction record itself and the manager that persists it
"""

import asyncio
import math
import time
import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional
from dataclasses import dataclass, field, asdict

from config import KEY_SEPARATOR
from database import AuctionStore

# Get logger from main bot module
logger = logging.getLogger("AuctionBot.Manager")


class AuctionError(Exception):
    """Base class for auction errors that can be shown to the user"""


class ValidationError(AuctionError):
    pass


class BidTooLowError(AuctionError):
    pass


class BidBelowLimitError(AuctionError):
    pass


class AuctionNotFoundError(AuctionError):
    pass


def _now_ms() -> int:
    return int(time.time() * 1000)


def _is_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _require_text(name: str, value) -> None:
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string, got {type(value).__name__}")
    if not value:
        raise ValidationError(f"{name} must not be empty")


def _require_amount(name: str, value) -> None:
    if not _is_number(value):
        raise ValidationError(f"{name} must be a number, got {type(value).__name__}")
    if value < 0:
        raise ValidationError(f"{name} must not be negative")


@dataclass
class Auction:
    """
    State of one channel auction.

    Instances are detached values: changing one does nothing to storage
    until it is passed to AuctionManager.save().
    """

    guild_id: str
    channel_id: str
    item: str
    price: float
    hosted_by: Optional[str] = None
    started_at: int = field(default_factory=_now_ms)
    winner: str = ""
    bid_limit: float = 0

    def __post_init__(self):
        _require_text("channel_id", self.channel_id)
        _require_text("guild_id", self.guild_id)
        _require_text("item", self.item)
        _require_amount("price", self.price)

        if self.hosted_by is not None and not isinstance(self.hosted_by, str):
            raise ValidationError("hosted_by must be a string")
        if self.started_at is None:
            self.started_at = _now_ms()
        if self.winner is None:
            self.winner = ""
        if self.bid_limit is None:
            self.bid_limit = 0
        _require_amount("bid_limit", self.bid_limit)

    @property
    def key(self) -> str:
        return make_key(self.guild_id, self.channel_id)

    @property
    def has_winner(self) -> bool:
        return bool(self.winner)

    def bid(self, price: float, user: str) -> None:
        """Raise the price to `price` with `user` as leader. Not persisted."""
        if not _is_number(price):
            raise ValidationError("Bid amount must be a number")
        if self.price >= price:
            raise BidTooLowError("Bid amount is lower than current bid!")
        if self.price + self.bid_limit >= price:
            raise BidBelowLimitError("Bid amount does not pass the bid limit!")
        self.price = price
        self.winner = user

    def set_winner(self, user: str) -> None:
        self.winner = user

    def set_price(self, price: float) -> None:
        self.price = price

    def set_bid_limit(self, bid_limit: float) -> None:
        self.bid_limit = bid_limit

    def set_item(self, item: str) -> None:
        self.item = item

    def auction_length(self) -> int:
        """Milliseconds since the auction started"""
        return _now_ms() - self.started_at

    def to_record(self) -> dict:
        return asdict(self)

    @classmethod
    def from_record(cls, record: dict) -> "Auction":
        return cls(
            guild_id=record.get("guild_id"),
            channel_id=record.get("channel_id"),
            item=record.get("item"),
            price=record.get("price"),
            hosted_by=record.get("hosted_by"),
            started_at=record.get("started_at"),
            winner=record.get("winner"),
            bid_limit=record.get("bid_limit"),
        )


def make_key(guild_id: str, channel_id: str) -> str:
    return f"{guild_id}{KEY_SEPARATOR}{channel_id}"


class AuctionManager:
    """
    Only gateway between Auction values and the storage backend.

    Every fetch rebuilds a fresh Auction from storage. Bids and endings that
    go through place_bid()/end() are serialised per channel.
    """

    def __init__(self, store: AuctionStore):
        self.store = store
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _serialized(self, key: str):
        """Hold the lock for `key`. The lock is dropped once nobody holds or waits on it."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._locks[key]

    async def start(
        self,
        item: str,
        price: float,
        channel_id: str,
        guild_id: str,
        hosted_by: Optional[str] = None,
        bid_limit: float = 0,
    ) -> Auction:
        """
        Create and persist a new auction.

        An existing auction under the same key is overwritten, callers
        should check exists() first.
        """
        auction = Auction(
            guild_id=guild_id,
            channel_id=channel_id,
            item=item,
            price=price,
            hosted_by=hosted_by,
            bid_limit=bid_limit,
        )
        self.store.set(auction.key, auction.to_record())
        logger.info(
            f"Auction started for '{item}' at {price} in {auction.key} (host={hosted_by})"
        )
        return auction

    async def fetch(self, guild_id: str, channel_id: str) -> Optional[Auction]:
        record = self.store.get(make_key(guild_id, channel_id))
        if record is None:
            return None
        return self._from_stored(guild_id, channel_id, record)

    async def fetch_all(self, guild_id: Optional[str] = None) -> List[Auction]:
        """All stored auctions, optionally only those of one guild"""
        auctions = []
        for record in self.store.list():
            if guild_id is not None and record.get("guild_id") != guild_id:
                continue
            auctions.append(Auction.from_record(record))
        return auctions

    async def exists(self, guild_id: str, channel_id: str) -> bool:
        return self.store.has(make_key(guild_id, channel_id))

    async def edit_auction(
        self, guild_id: str, channel_id: str, updated_auction: Auction
    ) -> Auction:
        """Replace the whole stored record with `updated_auction`"""
        self.store.set(make_key(guild_id, channel_id), updated_auction.to_record())
        logger.debug(f"Saved auction {make_key(guild_id, channel_id)}")
        return updated_auction

    async def save(self, auction: Auction) -> Auction:
        return await self.edit_auction(auction.guild_id, auction.channel_id, auction)

    async def delete_auction(self, guild_id: str, channel_id: str) -> None:
        self.store.delete(make_key(guild_id, channel_id))
        logger.debug(f"Deleted auction {make_key(guild_id, channel_id)}")

    async def place_bid(
        self, guild_id: str, channel_id: str, amount: float, bidder: str
    ) -> Auction:
        """Fetch, bid and save in one step. Raises AuctionError subclasses."""
        key = make_key(guild_id, channel_id)
        async with self._serialized(key):
            auction = await self.fetch(guild_id, channel_id)
            if auction is None:
                raise AuctionNotFoundError("There is no active auction in this channel!")
            auction.bid(amount, bidder)
            await self.save(auction)
        logger.info(f"Bid accepted on {key}: {amount} by {bidder}")
        return auction

    async def end(self, guild_id: str, channel_id: str) -> Optional[Auction]:
        """Remove the auction and return its final state (None if there was none)"""
        key = make_key(guild_id, channel_id)
        async with self._serialized(key):
            auction = await self.fetch(guild_id, channel_id)
            if auction is None:
                return None
            await self.delete_auction(guild_id, channel_id)
        logger.info(
            f"Auction ended in {key}: '{auction.item}' at {auction.price} "
            f"(winner={auction.winner or 'none'})"
        )
        return auction

    def _from_stored(self, guild_id: str, channel_id: str, record: dict) -> Auction:
        # the key is authoritative for location, the record for everything else
        record = dict(record)
        record["guild_id"] = guild_id
        record["channel_id"] = channel_id
        return Auction.from_record(record)
