# -*- coding: utf-8 -*-
"""
Tabela Price (parcela fixa) para financiamento de veículos.
- compute_installment: parcela fixa mensal
- compute_schedule: cronograma mês a mês (juros, amortização, saldo)
- total_cost: soma das parcelas pagas no cronograma

Convenções:
- principal: valor financiado (valor do veículo - entrada), > 0
- annual_rate: taxa ANUAL em decimal (ex.: 0.08 = 8% a.a.); taxa mensal = annual_rate / 12
- months: prazo em meses (int >= 1; até MAX_TERM_MONTHS nas entradas da API)

Every monetary value is a Decimal rounded half-up to cents before it is
carried to the next period.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

CENT = Decimal("0.01")
ZERO = Decimal("0")

# 50 anos
MAX_TERM_MONTHS = 600


def _dec(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value) -> Decimal:
    return _dec(value).quantize(CENT, rounding=ROUND_HALF_UP)


def monthly_rate(annual_rate) -> Decimal:
    return _dec(annual_rate) / 12


def compute_installment(principal, annual_rate, months: int) -> Decimal:
    n = int(months)
    if n <= 0:
        return ZERO.quantize(CENT)
    pv = _dec(principal)
    r = monthly_rate(annual_rate)
    if r == 0:
        return round2(pv / n)
    return round2(pv * r / (1 - (1 + r) ** -n))


def compute_schedule(principal, annual_rate, months: int,
                     payment: Optional[Decimal] = None) -> Dict:
    """Retorna {"schedule": [...], "total_interest": Decimal, "payment": Decimal}.

    Each row is a dict with month, payment, principal_paid, interest and
    balance. The principal portion of a row never exceeds the outstanding
    balance, so the last installment does not overpay.
    """
    n = int(months)
    r = monthly_rate(annual_rate)
    pmt = round2(payment) if payment is not None else compute_installment(principal, annual_rate, n)

    balance = round2(principal)
    total_interest = ZERO
    rows: List[Dict] = []
    for month in range(1, n + 1):
        interest = round2(balance * r)
        principal_paid = round2(min(pmt - interest, balance))
        balance = round2(balance - principal_paid)
        total_interest += interest
        rows.append(dict(
            month=month,
            payment=pmt,
            principal_paid=principal_paid,
            interest=interest,
            balance=balance,
        ))

    return {
        "schedule": rows,
        "total_interest": round2(total_interest),
        "payment": pmt,
    }


def total_cost(schedule: Dict) -> Decimal:
    """Soma do que é efetivamente pago (amortização + juros) no cronograma."""
    return round2(sum(
        (row["principal_paid"] + row["interest"] for row in schedule["schedule"]),
        ZERO,
    ))
