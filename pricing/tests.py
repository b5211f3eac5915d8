"""
Amortization engine and simulation endpoint tests
"""

from decimal import Decimal

from django.test import SimpleTestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from finance_app.api.rules import UserPrincipal
from pricing.calculators.pmt import MAX_TERM_MONTHS, compute_installment, compute_schedule, total_cost
from pricing.serializers import ScheduleRequest


class ComputeInstallmentTest(SimpleTestCase):
    """Test the fixed monthly installment"""

    def test_standard_loan(self):
        """Test 18000 at 8% a.a. over 12 months against the annuity formula"""
        r = 0.08 / 12
        expected = 18000 * r / (1 - (1 + r) ** -12)

        installment = compute_installment(Decimal("18000"), Decimal("0.08"), 12)

        self.assertAlmostEqual(float(installment), expected, delta=0.01)
        self.assertEqual(installment, installment.quantize(Decimal("0.01")))

    def test_zero_rate_is_straight_line(self):
        self.assertEqual(compute_installment(Decimal("1200"), Decimal("0"), 12), Decimal("100.00"))

    def test_non_positive_term(self):
        self.assertEqual(compute_installment(Decimal("1000"), Decimal("0.1"), 0), Decimal("0.00"))
        self.assertEqual(compute_installment(Decimal("1000"), Decimal("0.1"), -3), Decimal("0.00"))

    def test_accepts_plain_numbers(self):
        self.assertEqual(
            compute_installment(18000, 0.08, 12),
            compute_installment(Decimal("18000"), Decimal("0.08"), 12))


class ComputeScheduleTest(SimpleTestCase):
    """Test the month-by-month schedule"""

    CASES = [
        (Decimal("18000.00"), Decimal("0.08"), 12),
        (Decimal("50000.00"), Decimal("0.12"), 48),
        (Decimal("999.99"), Decimal("0.2999"), 7),
        (Decimal("100000.00"), Decimal("0.015"), 72),
        (Decimal("3000.00"), Decimal("0"), 9),
        (Decimal("10.00"), Decimal("0.5"), 1),
    ]

    def test_principal_is_reconstructed(self):
        """Test that principal portions add up to the principal within cent-level drift"""
        for principal, rate, months in self.CASES:
            with self.subTest(principal=principal, rate=rate, months=months):
                result = compute_schedule(principal, rate, months)
                paid = sum(row["principal_paid"] for row in result["schedule"])
                self.assertLessEqual(abs(paid - principal), Decimal("0.01") * months)

    def test_rows_shape(self):
        result = compute_schedule(Decimal("18000.00"), Decimal("0.08"), 12)

        self.assertEqual(len(result["schedule"]), 12)
        self.assertEqual([row["month"] for row in result["schedule"]], list(range(1, 13)))
        self.assertEqual(result["payment"], compute_installment(Decimal("18000.00"), Decimal("0.08"), 12))
        first = result["schedule"][0]
        self.assertEqual(first["interest"], Decimal("120.00"))
        self.assertEqual(first["principal_paid"], first["payment"] - first["interest"])
        self.assertEqual(first["balance"], Decimal("18000.00") - first["principal_paid"])
        self.assertEqual(
            result["total_interest"],
            sum(row["interest"] for row in result["schedule"]))

    def test_balance_never_negative(self):
        for principal, rate, months in self.CASES:
            with self.subTest(principal=principal, rate=rate, months=months):
                result = compute_schedule(principal, rate, months)
                self.assertTrue(all(row["balance"] >= 0 for row in result["schedule"]))

    def test_zero_interest_schedule(self):
        result = compute_schedule(Decimal("3000.00"), Decimal("0"), 3)

        self.assertEqual(result["total_interest"], Decimal("0.00"))
        self.assertEqual([row["principal_paid"] for row in result["schedule"]], [Decimal("1000.00")] * 3)
        self.assertEqual(result["schedule"][-1]["balance"], Decimal("0.00"))

    def test_overpaying_installment_is_capped(self):
        """Test that a large fixed payment never amortizes more than the balance"""
        result = compute_schedule(Decimal("1000.00"), Decimal("0"), 3, payment=Decimal("800.00"))

        principal_paid = [row["principal_paid"] for row in result["schedule"]]
        self.assertEqual(principal_paid, [Decimal("800.00"), Decimal("200.00"), Decimal("0.00")])
        self.assertEqual(result["payment"], Decimal("800.00"))

    def test_schedule_is_pure(self):
        first = compute_schedule(Decimal("50000.00"), Decimal("0.12"), 48)
        second = compute_schedule(Decimal("50000.00"), Decimal("0.12"), 48)

        self.assertEqual(first, second)

    def test_total_cost(self):
        result = compute_schedule(Decimal("18000.00"), Decimal("0.08"), 12)

        cost = total_cost(result)

        paid = sum(row["principal_paid"] for row in result["schedule"])
        self.assertEqual(cost, paid + result["total_interest"])


class ScheduleRequestTest(SimpleTestCase):
    """Test payload parsing for the simulation endpoint"""

    def test_defaults(self):
        req = ScheduleRequest.from_json({"value": 20000, "countOfMonths": "24"})

        self.assertEqual(req.count_of_months, 24)
        self.assertEqual(req.down_payment, Decimal("0"))
        self.assertEqual(req.interest_rate, Decimal("0"))
        self.assertIsNone(req.installment_value)
        self.assertEqual(req.principal, Decimal("20000"))

    def test_invalid_payloads(self):
        cases = [
            {"countOfMonths": 12},
            {"value": 1000},
            {"value": "abc", "countOfMonths": 12},
            {"value": 0, "countOfMonths": 12},
            {"value": 1000, "countOfMonths": 0},
            {"value": 1000, "countOfMonths": 12, "downPayment": 2000},
            {"value": 1000, "countOfMonths": 12, "interestRate": -0.1},
            {"value": 1000, "countOfMonths": 12, "installmentValue": 0},
            {"value": "NaN", "countOfMonths": 12},
            {"value": "Infinity", "countOfMonths": 12},
            {"value": float("inf"), "countOfMonths": 12},
            {"value": 1000, "countOfMonths": 12, "interestRate": "nan"},
            {"value": 1000, "countOfMonths": float("inf")},
            {"value": 1000, "countOfMonths": MAX_TERM_MONTHS + 1},
        ]
        for payload in cases:
            with self.subTest(payload=payload):
                with self.assertRaises(ValueError):
                    ScheduleRequest.from_json(payload)


class ScheduleAPITest(APITestCase):
    """Test the simulation endpoint"""

    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(user=UserPrincipal(id="user-1"))
        self.url = reverse('pricing:schedule')

    def test_schedule_success(self):
        payload = {"value": 20000, "downPayment": 2000, "countOfMonths": 12, "interestRate": 0.08}
        response = self.client.post(self.url, payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['principal'], Decimal("18000.00"))
        self.assertEqual(
            response.data['installmentValue'],
            compute_installment(Decimal("18000"), Decimal("0.08"), 12))
        self.assertEqual(len(response.data['schedule']), 12)
        self.assertEqual(
            set(response.data['schedule'][0]),
            {"month", "payment", "principalPaid", "interest", "balance"})

    def test_schedule_invalid_payload(self):
        response = self.client.post(self.url, {"value": -5, "countOfMonths": 12}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('message', response.data)

    def test_schedule_without_token(self):
        response = APIClient().post(self.url, {"value": 1000, "countOfMonths": 2}, format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_schedule_non_finite_numbers(self):
        for raw in ("NaN", "Infinity", "-Infinity"):
            with self.subTest(value=raw):
                response = self.client.post(
                    self.url, {"value": raw, "countOfMonths": 12}, format='json')

                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertIn('message', response.data)

    def test_schedule_term_cap(self):
        response = self.client.post(
            self.url, {"value": 1000, "countOfMonths": 100000000}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(
            self.url, {"value": 1000, "countOfMonths": MAX_TERM_MONTHS}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['schedule']), MAX_TERM_MONTHS)

    def test_schedule_value_beyond_precision(self):
        response = self.client.post(
            self.url, {"value": "1e30", "countOfMonths": 12}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
