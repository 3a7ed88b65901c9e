"""Error hierarchy for the lending core.

Every failure aborts the whole operation before any state is committed.
"""


class ZodialError(Exception):
    """Base error for all lending-core failures."""

    message = "Lending core error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        text = self.message if detail is None else f"{self.message}: {detail}"
        super().__init__(text)


# --- configuration / lookup -------------------------------------------------


class LookupFailure(ZodialError):
    """A referenced asset, pool, risk pair or price could not be resolved."""

    message = "Lookup failed"


class AssetNotRegistered(LookupFailure):
    message = "Asset not registered"


class PoolNotFound(LookupFailure):
    message = "Pool not found"


class InvalidRiskPair(LookupFailure):
    message = "Invalid risk pair"


class InvalidMint(LookupFailure):
    message = "Invalid mint"


class PriceStale(LookupFailure):
    message = "Price is stale or unavailable"


class PriceNotFound(LookupFailure):
    message = "Price not found in cache"


class UnsupportedMode(LookupFailure):
    message = "Unsupported mode"


class PythFeedNotSet(LookupFailure):
    message = "Asset has no Pyth feed ID configured"


class InvalidPythFeedId(LookupFailure):
    message = "Pyth feed ID is not valid"


# --- arithmetic ---------------------------------------------------------------


class MathError(ZodialError):
    message = "Math error"


class MathOverflow(MathError):
    message = "Math overflow"


class MathUnderflow(MathError):
    message = "Math underflow"


class DivisionByZero(MathError):
    message = "Division by zero"


# --- policy -------------------------------------------------------------------


class PolicyViolation(ZodialError):
    message = "Policy violation"


class HealthCheckFailed(PolicyViolation):
    message = "Health check failed"


class PositionHealthy(PolicyViolation):
    message = "Position is healthy and cannot be liquidated"


class InsufficientLiquidity(PolicyViolation):
    message = "Insufficient liquidity in the pool vault"


class InsufficientCollateral(PolicyViolation):
    message = "Insufficient collateral to seize"


class InsufficientShares(PolicyViolation):
    message = "Insufficient shares"


class ExceedsMaxAssets(PolicyViolation):
    message = "Exceeded max assets"


class ExceedsMaxPositions(PolicyViolation):
    message = "Exceeded max positions"


class InvalidAmount(PolicyViolation):
    message = "Amount must be greater than zero"


class PositionNotFound(PolicyViolation):
    message = "Position not found"


class MarketPaused(PolicyViolation):
    message = "Market is paused"


class NegativePythPrice(PolicyViolation):
    message = "Pyth price cannot be negative"


# --- authorization ------------------------------------------------------------


class AuthorizationError(ZodialError):
    message = "Authorization error"


class Unauthorized(AuthorizationError):
    message = "Unauthorized"
