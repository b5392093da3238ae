"""
Quarter Kernel: Contract Errors v1.0

Programming-contract violations raise immediately and are never recovered
inside the kernel. Callers pre-check through capabilities.py.

Content problems are caught when a catalog is built, never at play time.
"""

from __future__ import annotations


class ContractViolationError(ValueError):
    """Raised when a caller asks the kernel for an impossible transition."""

    def __init__(self, rule: str, detail: str) -> None:
        self.rule = rule
        self.detail = detail
        super().__init__(f"[CONTRACT:{rule}] {detail}")


class InsufficientCapitalError(ContractViolationError):
    """Raised when a spend exceeds the political capital balance."""

    def __init__(self, balance: int, cost: int) -> None:
        self.balance = balance
        self.cost = cost
        super().__init__(
            "insufficient_capital",
            f"cost {cost} exceeds political capital balance {balance}",
        )


class ContentValidationError(ValueError):
    """Raised when content data breaks its structural rules at load time."""
