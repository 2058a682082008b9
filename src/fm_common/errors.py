"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Authorization
  2xxx: Configuration
  3xxx: User input
  4xxx: Pricing
  5xxx: Redemption queue
  9xxx: System / invariant violations
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Authorization ---

class CallerNotAuthorizedError(AppError):
    def __init__(self, role_id: str, caller: str) -> None:
        self.role_id = role_id
        self.caller = caller
        super().__init__(1001, f"Caller {caller} lacks capability {role_id}", 403)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Invalid or expired credentials", 401)


# --- 2xxx: Configuration ---

class InvalidProjectTreasuryError(AppError):
    def __init__(self) -> None:
        super().__init__(2001, "Project treasury must not be the null address", 422)


class InvalidPriceSourceInterfaceError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2002, f"Price source does not expose the price interface: {detail}", 422)


class FeeExceedsMaximumError(AppError):
    def __init__(self, fee_bps: int, max_fee_bps: int) -> None:
        self.fee_bps = fee_bps
        self.max_fee_bps = max_fee_bps
        super().__init__(2003, f"Fee {fee_bps} bps exceeds maximum {max_fee_bps} bps", 422)


class InvalidTokenDecimalsError(AppError):
    def __init__(self, decimals: int) -> None:
        super().__init__(2004, f"Token decimals {decimals} out of range [1, 24]", 422)


# --- 3xxx: User input ---

class InvalidDepositAmountError(AppError):
    def __init__(self) -> None:
        super().__init__(3001, "Deposit amount must be greater than zero", 422)


class InvalidMinAmountOutError(AppError):
    def __init__(self) -> None:
        super().__init__(3002, "Minimum amount out must be greater than zero", 422)


class InsufficientOutputAmountError(AppError):
    def __init__(self, amount_out: int, min_amount_out: int) -> None:
        self.amount_out = amount_out
        self.min_amount_out = min_amount_out
        super().__init__(
            3003,
            f"Insufficient output amount: got {amount_out}, minimum {min_amount_out}",
            422,
        )


class InsufficientBalanceError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            3004,
            f"Insufficient balance: required {required}, available {available}",
            422,
        )


class BuyingClosedError(AppError):
    def __init__(self) -> None:
        super().__init__(3005, "Buying is closed", 422)


class SellingClosedError(AppError):
    def __init__(self) -> None:
        super().__init__(3006, "Selling is closed", 422)


class DirectOperationsOnlyError(AppError):
    def __init__(self) -> None:
        super().__init__(3007, "Only direct operations are allowed", 422)


# --- 4xxx: Pricing ---

class InvalidPriceError(AppError):
    def __init__(self) -> None:
        super().__init__(4001, "Price is zero or has never been published", 422)


# --- 5xxx: Redemption queue ---

class QueueExecutionFailedError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5001, f"Redemption queue execution failed: {detail}", 502)


class OrderNotFoundError(AppError):
    def __init__(self, order_id: int) -> None:
        super().__init__(5002, f"Redemption order not found: {order_id}", 404)


class InvalidOrderStateError(AppError):
    def __init__(self, order_id: int, state: str) -> None:
        super().__init__(
            5003, f"Redemption order {order_id} in state {state} cannot be settled", 422
        )


class SettlementAmountMismatchError(AppError):
    def __init__(self, amount: int, matched: int) -> None:
        self.amount = amount
        self.matched = matched
        super().__init__(
            5004,
            f"Settled amount {amount} does not cover whole PROCESSING orders"
            f" (oldest-first prefix reaches {matched})",
            422,
        )


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class OpenRedemptionUnderflowError(AppError):
    """Settlement reported more than is owed. Never a user error."""

    def __init__(self, amount: int, open_amount: int) -> None:
        super().__init__(
            9003,
            f"Invariant violated: settle {amount} exceeds open redemption amount {open_amount}",
            500,
        )
