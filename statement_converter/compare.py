# Copyright (c) 2025, itsdave GmbH and contributors
# For license information, please see license.txt

"""
Semantic comparison of two statements, independent of their source format.

Transactions are paired by position. Amount, direction, booking date and
value date are compared; references, descriptions and extra data differ
legitimately between formats and are ignored, as are the balances.
"""

from dataclasses import dataclass
from typing import Any, List


COMPARED_FIELDS = ("amount", "credit_or_debit", "booking_date", "value_date")


@dataclass(frozen=True)
class Difference:
    """One mismatch: index is the 0-based transaction position."""

    index: int
    field: str
    left: Any
    right: Any

    def describe(self):
        if self.field == "transaction":
            present = "right" if self.left is None else "left"
            return f"Transaction {self.index + 1} only present in the {present} statement"
        return f"Transaction {self.index + 1} {self.field} differs: {_display(self.left)} vs {_display(self.right)}"


@dataclass
class ComparisonResult:
    differences: List[Difference]

    @property
    def identical(self):
        return not self.differences

    def __bool__(self):
        return self.identical

    def __iter__(self):
        return iter(self.differences)

    def __len__(self):
        return len(self.differences)

    def report(self, left_name="left", right_name="right"):
        """Human readable summary of the comparison."""
        if self.identical:
            return f"The transaction records in '{left_name}' and '{right_name}' are identical."
        lines = ["Differences found:"]
        lines.extend(f"  - {difference.describe()}" for difference in self.differences)
        return "\n".join(lines)


def compare(left, right):
    """
    Compare the transactions of two statements.

    Swapping the arguments swaps left and right in every Difference and
    changes nothing else.

    Args:
        left: Statement
        right: Statement

    Returns:
        ComparisonResult
    """
    differences = []

    for index, (left_tx, right_tx) in enumerate(zip(left.transactions, right.transactions)):
        for field in COMPARED_FIELDS:
            left_value = getattr(left_tx, field)
            right_value = getattr(right_tx, field)
            if left_value != right_value:
                differences.append(Difference(index, field, left_value, right_value))

    # Surplus transactions on either side
    common = min(len(left.transactions), len(right.transactions))
    for index in range(common, len(left.transactions)):
        differences.append(Difference(index, "transaction", left.transactions[index], None))
    for index in range(common, len(right.transactions)):
        differences.append(Difference(index, "transaction", None, right.transactions[index]))

    return ComparisonResult(differences)


def _display(value):
    value = getattr(value, "name", value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)
