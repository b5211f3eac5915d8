"""
Management command to load mock vehicle finances from a CSV file
"""
import csv
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from finance_app.core_db.models import Finance, STATUS_CHOICES, STATUS_PENDING
from pricing.calculators.pmt import MAX_TERM_MONTHS, compute_installment, round2

VALID_STATUSES = {value for value, _ in STATUS_CHOICES}


def read_csv(file_path: str):
    """Read CSV file and return rows as dictionaries"""
    path = Path(file_path)
    if not path.exists():
        raise CommandError(f"CSV file not found: {file_path}")

    with path.open(newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def parse_datetime(datetime_str: str):
    """Parse datetime string"""
    if not datetime_str or datetime_str.strip() == "":
        return None

    datetime_str = datetime_str.strip()
    for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%Y/%m/%d"):
        try:
            dt = datetime.strptime(datetime_str, fmt)
            return timezone.make_aware(dt.replace(hour=0, minute=0, second=0))
        except ValueError:
            continue

    for fmt in ("%Y-%m-%dT%H:%M:%SZ", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S"):
        try:
            dt = datetime.strptime(datetime_str, fmt)
            return timezone.make_aware(dt)
        except ValueError:
            continue
    raise ValueError(f"Invalid datetime format: {datetime_str}")


def parse_decimal(raw, field: str, default=None) -> Decimal:
    if raw is None or str(raw).strip() == "":
        if default is None:
            raise ValueError(f"{field} is required")
        return default
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        raise ValueError(f"{field} must be numeric: {raw!r}")
    if not value.is_finite():
        raise ValueError(f"{field} must be a finite number: {raw!r}")
    return value


def finance_from_row(row) -> Finance:
    """Build (unsaved) Finance from a CSV row; raises ValueError on bad data"""
    user_id = (row.get('user_id') or '').strip()
    if not user_id:
        raise ValueError("user_id is required")

    value = parse_decimal(row.get('value'), 'value')
    down_payment = parse_decimal(row.get('down_payment'), 'down_payment', Decimal("0"))
    interest_rate = parse_decimal(row.get('interest_rate'), 'interest_rate', Decimal("0"))
    try:
        months = int(row.get('count_of_months') or 0)
    except ValueError:
        raise ValueError(f"count_of_months must be an integer: {row.get('count_of_months')!r}")

    if value <= 0:
        raise ValueError("value must be greater than zero")
    if down_payment < 0 or down_payment > value:
        raise ValueError("down_payment must be between 0 and value")
    if not 1 <= months <= MAX_TERM_MONTHS:
        raise ValueError(f"count_of_months must be between 1 and {MAX_TERM_MONTHS}")
    if interest_rate < 0:
        raise ValueError("interest_rate cannot be negative")

    status = (row.get('status') or STATUS_PENDING).strip()
    if status not in VALID_STATUSES:
        raise ValueError(f"invalid status: {status}")

    try:
        installment = compute_installment(round2(value - down_payment), interest_rate, months)
    except InvalidOperation:
        raise ValueError("value or interest_rate out of supported range")

    finance = Finance(
        user_id=user_id,
        brand=(row.get('brand') or '').strip(),
        model_name=(row.get('model_name') or '').strip(),
        type=(row.get('type') or '').strip(),
        value=value,
        down_payment=down_payment,
        count_of_months=months,
        interest_rate=interest_rate,
        installment_value=installment,
        status=status,
    )
    finance_date = parse_datetime(row.get('finance_date') or '')
    if finance_date:
        finance.finance_date = finance_date
    return finance


class Command(BaseCommand):
    help = 'Load mock vehicle finances from a CSV file'

    def add_arguments(self, parser):
        parser.add_argument(
            '--csv',
            type=str,
            required=True,
            help='CSV with user_id, brand, model_name, type, value, down_payment, '
                 'count_of_months, interest_rate[, status, finance_date]',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Validate the rows without saving them',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        rows = read_csv(options['csv'])

        if dry_run:
            self.stdout.write(self.style.WARNING(
                'DRY RUN - No data will be saved'))

        # Load without atomic transaction to allow partial success
        count = 0
        for line, row in enumerate(rows, start=2):
            try:
                finance = finance_from_row(row)
            except ValueError as e:
                self.stdout.write(
                    self.style.ERROR(f'Skipping line {line}: {e}')
                )
                continue
            if not dry_run:
                finance.save()
            count += 1

        self.stdout.write(
            self.style.SUCCESS(
                f'{"Would load" if dry_run else "Loaded"} {count} finances '
                f'({len(rows) - count} skipped)')
        )
