from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from expense_ledger.core.money import Money


class LedgerError(ValueError):
    code = "ledger_error"


class SplitError(LedgerError):
    code = "split_error"


class AggregationError(LedgerError):
    code = "aggregation_error"


class SimplificationError(LedgerError):
    code = "simplification_error"


class CurrencyMismatch(SplitError, AggregationError):
    code = "currency_mismatch"

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"Currency mismatch: expected {expected}, got {actual}.")
        self.expected = expected
        self.actual = actual


class NoParticipants(SplitError):
    code = "no_participants"

    def __init__(self) -> None:
        super().__init__("Nobody left to split the expense between.")


class UnknownParticipant(SplitError):
    code = "unknown_participant"

    def __init__(self, participant: Any) -> None:
        super().__init__(f"{participant!r} is not a participant of this expense.")
        self.participant = participant


class AmountMismatch(SplitError):
    code = "amount_mismatch"

    def __init__(self, expected: Money, actual: Money) -> None:
        super().__init__(f"Split amounts must sum to the expense total: expected {expected}, got {actual}.")
        self.expected = expected
        self.actual = actual


class PercentageMismatch(SplitError):
    code = "percentage_mismatch"

    def __init__(self, expected: Decimal, actual: Decimal) -> None:
        super().__init__(f"Percentages must add up to {expected}, got {actual}.")
        self.expected = expected
        self.actual = actual


class InvalidPercentage(SplitError):
    code = "invalid_percentage"

    def __init__(self, participant: Any, value: Decimal) -> None:
        super().__init__(f"Percentage for {participant!r} must be between 0 and 100, got {value}.")
        self.participant = participant
        self.value = value


class ZeroTotalWeight(SplitError):
    code = "zero_total_weight"

    def __init__(self) -> None:
        super().__init__("Total weight cannot be zero.")


class NegativeWeight(SplitError):
    code = "negative_weight"

    def __init__(self, participant: Any, weight: Decimal) -> None:
        super().__init__(f"Weight for {participant!r} cannot be negative, got {weight}.")
        self.participant = participant
        self.weight = weight


class UnbalancedLedger(SimplificationError):
    code = "unbalanced_ledger"

    def __init__(self, total: Money) -> None:
        super().__init__(f"Balances do not net to zero (sum is {total}).")
        self.total = total
