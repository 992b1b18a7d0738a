"""
Error taxonomy for the engine.

Every failure is a ValidationError carrying a stable reason code and the
component that raised it, e.g. ``SingularityPool: AMOUNT_IS_0``.
"""


class ValidationError(Exception):
    """Raised when validation fails."""
    reason = "VALIDATION_FAILED"

    def __init__(self, component: str = "Singularity", detail: str = None):
        self.component = component
        self.detail = detail
        message = f"{component}: {self.reason}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


# Input validation

class AmountIsZero(ValidationError):
    reason = "AMOUNT_IS_0"


class NegativeAmount(ValidationError):
    reason = "NEGATIVE_AMOUNT"


class ZeroAddress(ValidationError):
    reason = "ZERO_ADDRESS"


class NotSameLength(ValidationError):
    reason = "NOT_SAME_LENGTH"


class BaseFeeIsZero(ValidationError):
    reason = "BASE_FEE_IS_0"


class BaseFeeTooHigh(ValidationError):
    reason = "BASE_FEE_TOO_HIGH"


# Authorization

class NotAdmin(ValidationError):
    reason = "NOT_ADMIN"


class NotRouter(ValidationError):
    reason = "NOT_ROUTER"


class NotFactory(ValidationError):
    reason = "NOT_FACTORY"


class NotPusher(ValidationError):
    reason = "NOT_PUSHER"


class Expired(ValidationError):
    reason = "EXPIRED"


class InvalidSignature(ValidationError):
    reason = "INVALID_SIGNATURE"


class Locked(ValidationError):
    reason = "LOCKED"


# Capacity / state

class Paused(ValidationError):
    reason = "PAUSED"


class PoolExists(ValidationError):
    reason = "POOL_EXISTS"


class PoolNotFound(ValidationError):
    reason = "POOL_NOT_FOUND"


class DepositExceedsCap(ValidationError):
    reason = "DEPOSIT_EXCEEDS_CAP"


# Economic bounds

class InsufficientLiquidity(ValidationError):
    reason = "INSUFFICIENT_LIQUIDITY"


class InsufficientLiquidityAmount(ValidationError):
    reason = "INSUFFICIENT_LIQUIDITY_AMOUNT"


class InsufficientTokenAmount(ValidationError):
    reason = "INSUFFICIENT_TOKEN_AMOUNT"


class InsufficientOutputAmount(ValidationError):
    reason = "INSUFFICIENT_OUTPUT_AMOUNT"


class InsufficientInputAmount(ValidationError):
    reason = "INSUFFICIENT_INPUT_AMOUNT"


class InvalidInToken(ValidationError):
    reason = "INVALID_IN_TOKEN"


class InvalidOutToken(ValidationError):
    reason = "INVALID_OUT_TOKEN"


class InsufficientBalance(ValidationError):
    reason = "INSUFFICIENT_BALANCE"


class InsufficientAllowance(ValidationError):
    reason = "INSUFFICIENT_ALLOWANCE"


# Oracle

class InvalidOraclePrice(ValidationError):
    reason = "INVALID_ORACLE_PRICE"


class StaleOraclePrice(InvalidOraclePrice):
    reason = "STALE_ORACLE_PRICE"
