"""Pyth price feed adapter.

Pyth publishes prices as an integer mantissa and a power-of-ten exponent
(``actual = price * 10**exponent``). This module turns those into Q60 prices
and decodes the JSON payload served by Pyth's Hermes API. Fetching the
payload is left to the caller.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from zodial.errors import InvalidPythFeedId, MathOverflow, NegativePythPrice
from zodial.protocol.fixed_point import FRAC_BITS, MAX_BITS, ONE_BITS, Fixed

logger = logging.getLogger(__name__)

_FEED_ID_RE = re.compile(r"^[0-9a-f]{64}$")


@dataclass(frozen=True)
class PythPrice:
    """One decoded price observation."""

    feed_id: str
    price: int
    conf: int
    exponent: int
    publish_time: int

    @property
    def price_q60(self) -> int:
        return q60_from_pyth(self.price, self.exponent)

    def age(self, now: int) -> int:
        return now - self.publish_time


def normalize_feed_id(feed_id: str) -> str:
    """Lower-case 64-hex-digit feed id without the ``0x`` prefix."""
    text = feed_id.strip().lower()
    if text.startswith("0x"):
        text = text[2:]
    if not _FEED_ID_RE.match(text):
        raise InvalidPythFeedId(feed_id)
    return text


def q60_from_pyth(price: int, exponent: int) -> int:
    """Convert ``price * 10**exponent`` to Q60 bits.

    Scaling is exact integer arithmetic; the only rounding is the final
    truncation to 60 fractional bits.
    """
    if price < 0:
        raise NegativePythPrice(f"{price}e{exponent}")
    if exponent >= 0:
        return Fixed.from_int(price * 10**exponent).bits
    bits = (price << FRAC_BITS) // 10 ** (-exponent)
    if bits > MAX_BITS:
        raise MathOverflow(f"price {price}e{exponent}")
    return bits


def q60_to_float(price_q60: int) -> float:
    """Human-readable price for logging and display."""
    return price_q60 / ONE_BITS


def format_pyth_price(price: int, exponent: int) -> str:
    """Format a mantissa/exponent pair, e.g. (9998880000, -5) -> '99988.80000'."""
    if exponent >= 0:
        return str(price * 10**exponent)
    divisor = 10 ** (-exponent)
    sign = "-" if price < 0 else ""
    integer_part, fractional_part = divmod(abs(price), divisor)
    return f"{sign}{integer_part}.{fractional_part:0{-exponent}d}"


def _parse_entry(entry: Mapping[str, Any]) -> PythPrice:
    body = entry["price"]
    return PythPrice(
        feed_id=normalize_feed_id(entry["id"]),
        price=int(body["price"]),
        conf=int(body.get("conf", 0)),
        exponent=int(body["expo"]),
        publish_time=int(body["publish_time"]),
    )


def parse_hermes_payload(payload: Mapping[str, Any]) -> dict[str, PythPrice]:
    """Decode a Hermes ``/v2/updates/price/latest`` JSON body.

    Returns observations keyed by normalized feed id. Malformed entries are
    skipped with a warning so one bad feed does not block the rest.
    """
    out: dict[str, PythPrice] = {}
    for entry in payload.get("parsed", []):
        try:
            parsed = _parse_entry(entry)
        except (KeyError, TypeError, ValueError, InvalidPythFeedId):
            logger.warning("Skipping malformed Pyth entry: %r", entry, exc_info=True)
            continue
        out[parsed.feed_id] = parsed
    return out
