"""
ALFA Protocol - Errors

Every failed operation raises a ProtocolError subclass. The enclosing
ledger transaction is rolled back before the error reaches the caller.
"""

from typing import Optional


class ProtocolError(Exception):
    """Operation reverted."""

    code = "protocol_error"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {"error": self.code, "message": self.message}


class PreconditionFailed(ProtocolError):
    """Wrong owner, wrong timing, unknown type, disallowed asset, zero amount."""

    code = "precondition_failed"


class AccessDenied(ProtocolError):
    """Caller lacks the role required by the operation."""

    code = "access_denied"

    def __init__(self, account: str, role_name: str):
        self.account = account
        self.role_name = role_name
        super().__init__(f"Account {account} is missing role {role_name}")


class AdminError(ProtocolError):
    """Invalid admin configuration (percent overflow, type in use, duplicates)."""

    code = "admin_error"


class InsufficientAmount(ProtocolError):
    """Payment below price. Carries both amounts."""

    code = "insufficient_amount"
    what = "amount"

    def __init__(self, required: int, actual: int):
        self.required = required
        self.actual = actual
        super().__init__(f"Insufficient {self.what}: required {required}, got {actual}")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["required"] = self.required
        data["actual"] = self.actual
        return data


class InsufficientValue(InsufficientAmount):
    """Native value sent with the call is below the price."""

    code = "insufficient_value"
    what = "value"


class InsufficientBalance(InsufficientAmount):
    """Payer token balance is below the price."""

    code = "insufficient_balance"
    what = "balance"


class InsufficientAllowance(InsufficientAmount):
    """Payer token allowance is below the price."""

    code = "insufficient_allowance"
    what = "allowance"


class TransferFailed(ProtocolError):
    """Asset transfer returned False or reverted."""

    code = "transfer_failed"


class OracleError(ProtocolError):
    """Price router could not quote the path."""

    code = "oracle_error"


class ReentrancyError(ProtocolError):
    """Guarded entry point was re-entered."""

    code = "reentrancy"

    def __init__(self, entry_point: str):
        super().__init__(f"Reentrant call to {entry_point}")
