"""
Deduction Calculator

Turns a gross salary figure and an ordered list of deduction rules into
itemised deduction amounts and their total. Pure functions only; the
payroll run decides which rules apply to an employee.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from payroll_app.core.exceptions import InvalidInputError
from payroll_app.models.deduction import CalculationType

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Decimal) -> Decimal:
    """Round half-up to cents."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, field: str) -> Decimal:
    """Coerce a numeric input to a finite Decimal or raise InvalidInputError."""
    if isinstance(value, bool) or value is None:
        raise InvalidInputError(f"{field} must be a number", details={"field": field, "value": repr(value)})
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidInputError(f"{field} must be a number", details={"field": field, "value": repr(value)}) from None
    if not number.is_finite():
        raise InvalidInputError(f"{field} must be finite", details={"field": field, "value": str(number)})
    return number


@dataclass(frozen=True)
class DeductionRule:
    name: str
    kind: CalculationType
    value: Decimal
    deduction_type: Optional[str] = None


@dataclass(frozen=True)
class DeductionLine:
    name: str
    amount: Decimal
    deduction_type: Optional[str] = None


@dataclass(frozen=True)
class DeductionBreakdown:
    lines: Tuple[DeductionLine, ...]
    total_deductions: Decimal


def calculate_deductions(gross_amount: Any, rules: Sequence[DeductionRule]) -> DeductionBreakdown:
    """
    Compute each deduction's amount and their sum.

    Percentage rules take `gross_amount * value` with value in [0, 1];
    fixed rules contribute `value` as-is. Output order follows `rules`.

    Raises:
        InvalidInputError: negative or non-finite gross, a percentage outside
            [0, 1], or a negative/non-finite fixed amount.
    """
    gross = to_decimal(gross_amount, "gross_amount")
    if gross < 0:
        raise InvalidInputError("gross_amount must not be negative", details={"gross_amount": str(gross)})

    lines: List[DeductionLine] = []
    for rule in rules:
        try:
            kind = CalculationType(rule.kind)
        except ValueError:
            raise InvalidInputError(
                f"Unknown calculation type '{rule.kind}' for deduction '{rule.name}'",
                details={"rule": rule.name, "kind": str(rule.kind)}
            ) from None

        value = to_decimal(rule.value, f"{rule.name}.value")
        if kind == CalculationType.PERCENTAGE:
            if value < 0 or value > 1:
                raise InvalidInputError(
                    f"Percentage for '{rule.name}' must be between 0 and 1",
                    details={"rule": rule.name, "value": str(value)}
                )
            amount = to_money(gross * value)
        else:
            if value < 0:
                raise InvalidInputError(
                    f"Fixed amount for '{rule.name}' must not be negative",
                    details={"rule": rule.name, "value": str(value)}
                )
            amount = to_money(value)

        lines.append(DeductionLine(name=rule.name, amount=amount, deduction_type=rule.deduction_type))

    total = sum((line.amount for line in lines), ZERO)
    return DeductionBreakdown(lines=tuple(lines), total_deductions=to_money(total))


def rules_from_entries(entries: Iterable[Any], period_start, period_end) -> List[DeductionRule]:
    """Build the rule list from an employee's deduction entries that apply to the period."""
    return [
        DeductionRule(
            name=entry.display_name,
            kind=entry.calculation_type,
            value=entry.value,
            deduction_type=entry.deduction_type,
        )
        for entry in entries
        if entry.applies_to(period_start, period_end)
    ]
