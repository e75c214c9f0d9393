"""
Error Handling for the Strategy Harvest Harness
Structured exceptions for state scopes, bootstrap, trades and invariant checks

Features:
- Custom exception classes with error codes and details
- Bootstrap stage tagging (fund/resolve/trade/add_liquidity)
- Invariant violations that stay AssertionErrors for pytest
- Error tracking and aggregation per suite run

Nothing in this module retries: a flaky ledger call is a bug to fix.
"""

import logging
import traceback
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
from enum import Enum

logger = logging.getLogger("ErrorHandler")


# ============================================
# ERROR CODES
# ============================================

class ErrorCode(str, Enum):
    # State scope misuse
    SNAPSHOT_FAILED = "SNAPSHOT_FAILED"
    INVALID_HANDLE = "INVALID_HANDLE"

    # Bootstrap
    NO_LIQUIDITY = "NO_LIQUIDITY"
    LIQUIDITY_ADD_REJECTED = "LIQUIDITY_ADD_REJECTED"
    BOOTSTRAP_FAILED = "BOOTSTRAP_FAILED"

    # Wiring
    ROUTE_INVALID = "ROUTE_INVALID"
    DEPLOYMENT_FAILED = "DEPLOYMENT_FAILED"

    # Ledger
    TRANSACTION_REVERTED = "TRANSACTION_REVERTED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class BootstrapStage(str, Enum):
    FUND = "fund"
    RESOLVE = "resolve"
    TRADE = "trade"
    ADD_LIQUIDITY = "add_liquidity"


# ============================================
# CUSTOM EXCEPTIONS
# ============================================

class HarnessError(Exception):
    """Base exception for the harness"""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Dict = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.timestamp = datetime.now()

    @property
    def stage(self) -> Optional[str]:
        return self.details.get("stage")

    def to_dict(self) -> Dict:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp.isoformat()
            }
        }

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class SnapshotFailure(HarnessError):
    """Ledger backend could not checkpoint its state"""
    def __init__(self, message: str, original_error: Exception = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)
        super().__init__(message, ErrorCode.SNAPSHOT_FAILED, details)


class InvalidHandle(HarnessError):
    """Rollback with a consumed or invalidated handle"""
    def __init__(self, snapshot_id: str, sequence: int, reason: str):
        super().__init__(
            f"Snapshot handle #{sequence} ({snapshot_id}) is not usable: {reason}",
            ErrorCode.INVALID_HANDLE,
            {"snapshot_id": snapshot_id, "sequence": sequence, "reason": reason}
        )


class NoLiquidityFound(HarnessError):
    """Price discovery has no tradable venue for a token"""
    def __init__(self, token: str, excluded: Optional[list] = None):
        super().__init__(
            f"No liquidity found for token {token}",
            ErrorCode.NO_LIQUIDITY,
            {"token": token, "excluded": list(excluded or [])}
        )


class LiquidityAddRejected(HarnessError):
    """Liquidity venue refused the add (deadline, slippage or revert)"""
    def __init__(self, pool: str, reason: str):
        super().__init__(
            f"Liquidity add rejected by {pool}: {reason}",
            ErrorCode.LIQUIDITY_ADD_REJECTED,
            {"pool": pool, "reason": reason}
        )


class BootstrapError(HarnessError):
    """Bootstrap stage failed for a reason other than the typed ones"""
    def __init__(self, stage: str, message: str, original_error: Exception = None):
        details = {"stage": stage}
        if original_error:
            details["original_error"] = str(original_error)
        super().__init__(message, ErrorCode.BOOTSTRAP_FAILED, details)


class RouteValidationError(HarnessError):
    """Conversion route or venue lookup is malformed"""
    def __init__(self, message: str, details: Dict = None):
        super().__init__(message, ErrorCode.ROUTE_INVALID, details)


class DeploymentError(HarnessError):
    """Contract deploy or wiring failed"""
    def __init__(self, name: str, message: str, original_error: Exception = None):
        details = {"contract": name}
        if original_error:
            details["original_error"] = str(original_error)
        super().__init__(message, ErrorCode.DEPLOYMENT_FAILED, details)


class TransactionReverted(HarnessError):
    """A ledger call reverted"""
    def __init__(self, contract: str, method: str, reason: str, tx_hash: str = None):
        details = {"contract": contract, "method": method, "reason": reason}
        if tx_hash:
            details["tx_hash"] = tx_hash
        super().__init__(
            f"{method} on {contract} reverted: {reason}",
            ErrorCode.TRANSACTION_REVERTED,
            details
        )

    @property
    def reason(self) -> str:
        return self.details["reason"]


class InvariantViolation(AssertionError):
    """A post-condition check failed. This is a test outcome, never swallowed."""

    def __init__(self, invariant: str, observed: Any, expected: Any, note: str = ""):
        self.invariant = invariant
        self.observed = observed
        self.expected = expected
        message = f"Invariant '{invariant}' violated: observed {observed}, expected {expected}"
        if note:
            message += f" ({note})"
        super().__init__(message)


@dataclass(frozen=True)
class BasketFundingShortfall:
    """Soft failure: one basket token could not be acquired"""
    token: str
    symbol: str
    reason: str


# ============================================
# ERROR TRACKING
# ============================================

class ErrorTracker:
    """Tracks and aggregates failures across a suite run"""

    def __init__(self, max_errors: int = 1000):
        self.errors: list = []
        self.max_errors = max_errors
        self.error_counts: Dict[str, int] = {}

    def track(self, error: BaseException, context: str = None):
        """Track an error"""
        error_type = type(error).__name__

        self.error_counts[error_type] = self.error_counts.get(error_type, 0) + 1

        error_info = {
            "type": error_type,
            "message": str(error),
            "context": context,
            "timestamp": datetime.now().isoformat(),
            "traceback": None
        }

        if isinstance(error, HarnessError):
            error_info["code"] = error.code.value
            error_info["details"] = error.details
        elif isinstance(error, InvariantViolation):
            error_info["invariant"] = error.invariant
            error_info["observed"] = str(error.observed)
            error_info["expected"] = str(error.expected)
        else:
            error_info["traceback"] = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )

        self.errors.append(error_info)

        if len(self.errors) > self.max_errors:
            self.errors = self.errors[-self.max_errors:]

        logger.error(f"Error tracked in {context}: {error_type} - {str(error)[:200]}")

    def get_stats(self) -> Dict:
        """Get error statistics"""
        return {
            "total_errors": len(self.errors),
            "error_counts": self.error_counts,
            "recent_errors": self.errors[-10:],
            "timestamp": datetime.now().isoformat()
        }

    def clear(self):
        """Clear error history"""
        self.errors.clear()
        self.error_counts.clear()
