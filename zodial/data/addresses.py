"""Canonical account address derivation.

Addresses are deterministic digests of a program id and a list of seeds, so
any account that claims an identity (e.g. "the pool for mint X in market M")
can be checked by re-deriving its address.
"""

from __future__ import annotations

import hashlib

from zodial.data.constants import (
    PROGRAM_ID,
    SEED_ASSET_REG,
    SEED_MARKET,
    SEED_OBLIGATION,
    SEED_POOL,
    SEED_PRICE_CACHE,
    SEED_RISK_REG,
    SEED_VAULT,
)


def _seed_bytes(seed: bytes | str) -> bytes:
    return seed if isinstance(seed, bytes) else seed.encode("utf-8")


def derive_address(*seeds: bytes | str, program_id: str = PROGRAM_ID) -> str:
    """Derive a hex address from ``program_id`` and ``seeds``.

    Each seed is length-prefixed so that ``("ab", "c")`` and ``("a", "bc")``
    never collide.
    """
    h = hashlib.sha256()
    h.update(_seed_bytes(program_id))
    for seed in seeds:
        raw = _seed_bytes(seed)
        h.update(len(raw).to_bytes(2, "little"))
        h.update(raw)
    return h.hexdigest()


def market_address(authority: str, program_id: str = PROGRAM_ID) -> str:
    return derive_address(SEED_MARKET, authority, program_id=program_id)


def asset_registry_address(market: str, program_id: str = PROGRAM_ID) -> str:
    return derive_address(SEED_ASSET_REG, market, program_id=program_id)


def risk_registry_address(market: str, program_id: str = PROGRAM_ID) -> str:
    return derive_address(SEED_RISK_REG, market, program_id=program_id)


def price_cache_address(market: str, program_id: str = PROGRAM_ID) -> str:
    return derive_address(SEED_PRICE_CACHE, market, program_id=program_id)


def pool_address(market: str, mint: str, program_id: str = PROGRAM_ID) -> str:
    return derive_address(SEED_POOL, market, mint, program_id=program_id)


def vault_address(pool: str, program_id: str = PROGRAM_ID) -> str:
    return derive_address(SEED_VAULT, pool, program_id=program_id)


def obligation_address(market: str, owner: str, program_id: str = PROGRAM_ID) -> str:
    return derive_address(SEED_OBLIGATION, market, owner, program_id=program_id)
