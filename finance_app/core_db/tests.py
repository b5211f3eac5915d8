"""
Model and management command tests for core_db
"""

import tempfile
from decimal import Decimal
from io import StringIO
from pathlib import Path

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from finance_app.core_db.models import Finance
from pricing.calculators.pmt import compute_installment

CSV_HEADER = "user_id,brand,model_name,type,value,down_payment,count_of_months,interest_rate,status,finance_date\n"


class FinanceModelTest(TestCase):
    """Test Finance defaults and derived values"""

    def test_defaults(self):
        finance = Finance.objects.create(
            user_id="user-1", value=Decimal("10000.00"), count_of_months=10,
            installment_value=Decimal("1000.00"))

        self.assertEqual(finance.status, "pending")
        self.assertEqual(finance.contract_status, "unsigned")
        self.assertFalse(finance.deleted)
        self.assertIsNone(finance.contract_signed_at)
        self.assertIsNotNone(finance.finance_date)
        self.assertEqual(finance.principal_amount, Decimal("10000.00"))
        self.assertTrue(finance.contract_number.startswith("FIN-"))
        self.assertEqual(len(finance.contract_number), 16)


class LoadMockFinancesCommandTest(TestCase):
    """Test the CSV loader"""

    def write_csv(self, body):
        tmp = tempfile.NamedTemporaryFile("w", suffix=".csv", delete=False, encoding="utf-8")
        with tmp:
            tmp.write(CSV_HEADER + body)
        self.addCleanup(Path(tmp.name).unlink)
        return tmp.name

    def test_load_rows(self):
        path = self.write_csv(
            "user-1,Fiat,Argo,hatch,60000,10000,48,0.08,approved,2024-05-01\n"
            "user-2,VW,Polo,hatch,0,0,12,0.1,,\n"
            "user-3,Honda,Civic,sedan,90000,,36,,,\n"
        )
        out = StringIO()
        call_command('load_mock_finances', csv=path, stdout=out)

        self.assertEqual(Finance.objects.count(), 2)
        argo = Finance.objects.get(user_id="user-1")
        self.assertEqual(argo.status, "approved")
        self.assertEqual(argo.installment_value,
                         compute_installment(Decimal("50000"), Decimal("0.08"), 48))
        self.assertEqual(argo.finance_date.year, 2024)
        civic = Finance.objects.get(user_id="user-3")
        self.assertEqual(civic.installment_value, Decimal("2500.00"))
        self.assertIn("Skipping line 3", out.getvalue())
        self.assertIn("Loaded 2 finances", out.getvalue())

    def test_dry_run(self):
        path = self.write_csv("user-1,Fiat,Argo,hatch,60000,10000,48,0.08,,\n")
        out = StringIO()
        call_command('load_mock_finances', csv=path, dry_run=True, stdout=out)

        self.assertEqual(Finance.objects.count(), 0)
        self.assertIn("Would load 1 finances", out.getvalue())

    def test_out_of_range_rows_are_skipped(self):
        path = self.write_csv(
            "user-1,Fiat,Argo,hatch,NaN,0,12,0.1,,\n"
            "user-2,Fiat,Argo,hatch,1e30,0,12,0.1,,\n"
            "user-3,Fiat,Argo,hatch,1000,0,601,0.1,,\n"
            "user-4,Fiat,Argo,hatch,1000,0,600,0.1,,\n"
        )
        out = StringIO()
        call_command('load_mock_finances', csv=path, stdout=out)

        self.assertEqual(list(Finance.objects.values_list("user_id", flat=True)), ["user-4"])
        self.assertIn("Loaded 1 finances (3 skipped)", out.getvalue())

    def test_missing_file(self):
        with self.assertRaises(CommandError):
            call_command('load_mock_finances', csv='/nonexistent/finances.csv', stdout=StringIO())


class ClearFinancesCommandTest(TestCase):
    """Test the cleanup command"""

    def setUp(self):
        for deleted in (False, True, True):
            Finance.objects.create(
                user_id="user-1", value=Decimal("10000.00"), count_of_months=10,
                installment_value=Decimal("1000.00"), deleted=deleted)

    def test_clear_deleted_only(self):
        call_command('clear_finances', deleted_only=True, stdout=StringIO())

        self.assertEqual(Finance.objects.count(), 1)
        self.assertFalse(Finance.objects.get().deleted)

    def test_clear_all(self):
        call_command('clear_finances', stdout=StringIO())

        self.assertEqual(Finance.objects.count(), 0)

    def test_dry_run(self):
        out = StringIO()
        call_command('clear_finances', dry_run=True, stdout=out)

        self.assertEqual(Finance.objects.count(), 3)
        self.assertIn("Would delete 3 Finance records", out.getvalue())
