"""
pricing_source.py - Price feeds and the oracle staleness guard

Provides the price infrastructure every valuation in the engine depends on.

Classes:
- StaticPriceFeed: Aggregator-style feed whose price is pushed round by round
- TimeSeriesPriceFeed: Feed replaying a historical price path against a Clock
- OracleGuard: The only sanctioned way to read a feed; rejects stale,
  incomplete and non-positive quotes

Prices are integers in the feed's native decimals (8 for the reference
feeds) and denominated in USD.
"""

from bisect import bisect_right
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from .core import (
    Clock, PriceFeed, PriceQuote,
    StalePrice, InvalidPrice,
    FEED_DECIMALS, ORACLE_TIMEOUT,
)


class StaticPriceFeed:
    """
    Price feed whose answer changes only when a new round is pushed.

    Each update_price() call opens a new round stamped with the clock's
    current time. Without a clock, rounds are stamped 1970-01-01 unless an
    explicit updated_at is given.
    """

    def __init__(self, initial_price: int, decimals: int = FEED_DECIMALS, clock: Optional[Clock] = None):
        """
        Initialize the feed with a first round.

        Args:
            initial_price: Price in native decimals (e.g. 2000_00000000 for $2000 at 8 decimals)
            decimals: Fractional digits of reported prices
            clock: Time source used to stamp rounds
        """
        if decimals < 0:
            raise ValueError(f"decimals cannot be negative, got {decimals}")
        self._decimals = decimals
        self.clock = clock
        self.rounds: Dict[int, PriceQuote] = {}
        self.latest_round = 0
        self.update_price(initial_price)

    @property
    def decimals(self) -> int:
        return self._decimals

    def _now(self) -> datetime:
        return self.clock.now if self.clock is not None else datetime(1970, 1, 1)

    def update_price(self, price: int, updated_at: Optional[datetime] = None) -> PriceQuote:
        """Open a new round with the given price."""
        timestamp = updated_at or self._now()
        round_id = self.latest_round + 1
        return self.update_round_data(round_id, price, timestamp, timestamp)

    def update_round_data(
        self,
        round_id: int,
        price: int,
        updated_at: Optional[datetime],
        started_at: Optional[datetime],
        answered_in_round: Optional[int] = None,
    ) -> PriceQuote:
        """
        Write a round directly and make it the latest one.

        answered_in_round defaults to round_id. Passing updated_at=None or an
        answered_in_round behind round_id simulates an incomplete round.
        """
        quote = PriceQuote(
            round_id=round_id,
            price=price,
            started_at=started_at,
            updated_at=updated_at,
            answered_in_round=round_id if answered_in_round is None else answered_in_round,
        )
        self.rounds[round_id] = quote
        self.latest_round = round_id
        return quote

    def get_round_data(self, round_id: int) -> PriceQuote:
        """Return a historical round."""
        if round_id not in self.rounds:
            raise KeyError(f"No data for round {round_id}")
        return self.rounds[round_id]

    def latest_quote(self) -> PriceQuote:
        return self.rounds[self.latest_round]

    @property
    def latest_price(self) -> int:
        return self.latest_quote().price

    def __repr__(self):
        return f"StaticPriceFeed(price={self.latest_price}, decimals={self._decimals}, round={self.latest_round})"


class TimeSeriesPriceFeed:
    """
    Price feed backed by a historical price path.

    latest_quote() reports the most recent observation at or before the
    clock's current time, stamped with that observation's own timestamp, so
    a path with gaps longer than the oracle timeout produces stale quotes.
    """

    def __init__(
        self,
        clock: Clock,
        price_path: Optional[List[Tuple[datetime, int]]] = None,
        decimals: int = FEED_DECIMALS,
    ):
        """
        Initialize the feed.

        Args:
            clock: Time source deciding which observation is "latest"
            price_path: Optional list of (timestamp, price) tuples
            decimals: Fractional digits of reported prices

        Example:
            feed = TimeSeriesPriceFeed(clock, [
                (t0, 2000_00000000),
                (t1, 1800_00000000),
            ])
        """
        self.clock = clock
        self._decimals = decimals
        self.price_history: List[Tuple[datetime, int]] = sorted(price_path or [], key=lambda x: x[0])

    @property
    def decimals(self) -> int:
        return self._decimals

    def add_price(self, timestamp: datetime, price: int) -> None:
        """Add an observation, keeping the history in chronological order."""
        self.price_history.append((timestamp, price))
        self.price_history.sort(key=lambda x: x[0])

    def latest_quote(self) -> PriceQuote:
        """
        Return the observation at or before the clock's time as a quote.

        Round ids are 1-based positions in the history. If no observation
        exists yet, the returned quote has round 0 and no updated_at, which
        the oracle guard rejects as stale.
        """
        timestamps = [ts for ts, _ in self.price_history]
        idx = bisect_right(timestamps, self.clock.now)
        if idx == 0:
            return PriceQuote(round_id=0, price=0, started_at=None, updated_at=None, answered_in_round=0)
        timestamp, price = self.price_history[idx - 1]
        return PriceQuote(
            round_id=idx,
            price=price,
            started_at=timestamp,
            updated_at=timestamp,
            answered_in_round=idx,
        )

    def get_all_timestamps(self) -> List[datetime]:
        return [ts for ts, _ in self.price_history]

    def __repr__(self):
        return f"TimeSeriesPriceFeed({len(self.price_history)} observations, decimals={self._decimals})"


class OracleGuard:
    """
    Staleness guard wrapping every price feed read.

    A quote is rejected with StalePrice when:
    - it was never updated (updated_at is None), or
    - it was answered in an earlier round than the one reported, or
    - now - updated_at > timeout.
    A non-positive price is rejected with InvalidPrice. Nothing is cached:
    every call re-reads the feed.
    """

    def __init__(self, clock: Clock, timeout: timedelta = ORACLE_TIMEOUT):
        if timeout <= timedelta(0):
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.clock = clock
        self.timeout = timeout

    def latest_quote(self, feed: PriceFeed) -> PriceQuote:
        """Read the feed's latest quote, failing if it cannot be trusted."""
        return stale_check_latest_quote(feed, self.clock.now, self.timeout)

    def latest_price(self, feed: PriceFeed) -> int:
        return self.latest_quote(feed).price

    def get_timeout(self) -> timedelta:
        return self.timeout

    def __repr__(self):
        return f"OracleGuard(timeout={self.timeout})"


def stale_check_latest_quote(
    feed: PriceFeed,
    now: datetime,
    timeout: timedelta = ORACLE_TIMEOUT,
) -> PriceQuote:
    """
    Return the feed's latest quote after validating freshness and sign.

    Raises:
        StalePrice: If the quote is incomplete or older than timeout
        InvalidPrice: If the price is zero or negative
    """
    quote = feed.latest_quote()

    if quote.updated_at is None or quote.answered_in_round < quote.round_id:
        raise StalePrice(f"Incomplete round {quote.round_id} from {feed!r}")

    age = now - quote.updated_at
    if age > timeout:
        raise StalePrice(f"Quote from {feed!r} is {age} old (timeout {timeout})")

    if quote.price <= 0:
        raise InvalidPrice(f"Non-positive price {quote.price} from {feed!r}")

    return quote
