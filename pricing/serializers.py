from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

from pricing.calculators.pmt import MAX_TERM_MONTHS

REQUIRED_FIELDS = ["value", "countOfMonths"]


def _as_decimal(data: Dict, key: str, default=None) -> Optional[Decimal]:
    raw = data.get(key, default)
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValueError(f"'{key}' deve ser numérico")
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise ValueError(f"'{key}' deve ser numérico")
    if not value.is_finite():
        raise ValueError(f"'{key}' deve ser um número finito")
    return value


@dataclass
class ScheduleRequest:
    value: Decimal
    count_of_months: int
    down_payment: Decimal = Decimal("0")
    interest_rate: Decimal = Decimal("0")
    installment_value: Optional[Decimal] = None

    @classmethod
    def from_json(cls, data: Dict):
        if not isinstance(data, dict):
            raise ValueError("payload deve ser um objeto JSON")
        missing = [k for k in REQUIRED_FIELDS if data.get(k) in (None, "")]
        if missing:
            raise ValueError(f"campos ausentes: {missing}")

        value = _as_decimal(data, "value")
        down_payment = _as_decimal(data, "downPayment", 0)
        interest_rate = _as_decimal(data, "interestRate", 0)
        installment_value = _as_decimal(data, "installmentValue")
        try:
            months = int(data["countOfMonths"])
        except (TypeError, ValueError, OverflowError):
            raise ValueError("'countOfMonths' deve ser inteiro")

        if value <= 0:
            raise ValueError("'value' deve ser maior que zero")
        if months < 1:
            raise ValueError("'countOfMonths' deve ser >= 1")
        if months > MAX_TERM_MONTHS:
            raise ValueError(f"'countOfMonths' deve ser <= {MAX_TERM_MONTHS}")
        if down_payment < 0 or down_payment > value:
            raise ValueError("'downPayment' deve estar entre 0 e 'value'")
        if interest_rate < 0:
            raise ValueError("'interestRate' não pode ser negativa")
        if installment_value is not None and installment_value <= 0:
            raise ValueError("'installmentValue' deve ser maior que zero")

        return cls(
            value=value,
            count_of_months=months,
            down_payment=down_payment,
            interest_rate=interest_rate,
            installment_value=installment_value,
        )

    @property
    def principal(self) -> Decimal:
        return self.value - self.down_payment


def schedule_row_to_json(row: Dict) -> Dict:
    return {
        "month": row["month"],
        "payment": row["payment"],
        "principalPaid": row["principal_paid"],
        "interest": row["interest"],
        "balance": row["balance"],
    }
