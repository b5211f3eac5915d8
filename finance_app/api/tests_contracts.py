"""
Contract signing tests: state transition, preconditions and the
post-commit notifications (points service and confirmation e-mail)
"""

from decimal import Decimal
from smtplib import SMTPException
from unittest.mock import Mock, patch
import uuid

import requests
from django.core import mail
from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from finance_app.api.contracts import sign_contract
from finance_app.api.exceptions import ConflictError
from finance_app.api.integration import ServiceEndpoints
from finance_app.api import rules
from finance_app.api.rules import AdminPrincipal, UserPrincipal
from finance_app.core_db.models import Finance

POINTS_URL = "http://points.test/api"
USERS_URL = "http://users.test/api/users"


@override_settings(POINTS_SERVICE_URL="", VEHICLE_API_URL="", USER_SERVICE_URL=USERS_URL)
class ContractTestSetup(APITestCase):
    """Base test class with an approved, unsigned finance"""

    def setUp(self):
        self.owner = UserPrincipal(id="user-1", email="owner@test.com", name="Owner")
        self.client = APIClient()
        self.client.force_authenticate(user=self.owner, token="owner-token")

        self.finance = Finance.objects.create(
            user_id="user-1",
            brand="Toyota",
            model_name="Corolla",
            type="sedan",
            value=Decimal("120000.00"),
            down_payment=Decimal("20000.00"),
            count_of_months=36,
            interest_rate=Decimal("0.12"),
            installment_value=Decimal("3321.43"),
            status="approved",
        )
        self.url = reverse('finance_sign_contract', args=[self.finance.finance_id])

    def sign(self, client=None):
        with self.captureOnCommitCallbacks(execute=True):
            return (client or self.client).post(self.url, format='json')


class SignContractAPITest(ContractTestSetup):
    """Test the signing transition and its preconditions"""

    def test_sign_contract_success(self):
        """Test signing an approved finance"""
        response = self.sign()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Contract signed successfully!')
        self.assertEqual(response.data['finance']['id'], str(self.finance.finance_id))
        self.assertEqual(response.data['finance']['contractStatus'], 'signed')
        self.assertEqual(response.data['finance']['status'], 'in_progress')
        self.assertIsNotNone(response.data['finance']['signedAt'])

        self.finance.refresh_from_db()
        self.assertEqual(self.finance.contract_status, 'signed')
        self.assertEqual(self.finance.status, 'in_progress')
        self.assertIsNotNone(self.finance.contract_signed_at)

    def test_sign_contract_sends_email(self):
        """Test that the owner receives the confirmation e-mail"""
        self.sign()

        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertEqual(message.to, ['owner@test.com'])
        self.assertIn(self.finance.contract_number, message.subject)
        html, mimetype = message.alternatives[0]
        self.assertEqual(mimetype, 'text/html')
        self.assertIn('Corolla', html)

    def test_sign_contract_twice(self):
        """Test that a signed contract cannot be signed again"""
        self.sign()
        response = self.sign()

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'This contract has already been signed.')
        self.assertEqual(len(mail.outbox), 1)

    def test_sign_contract_not_approved(self):
        """Test that only approved finances can be signed"""
        self.finance.status = 'pending'
        self.finance.save()

        response = self.sign()

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.finance.refresh_from_db()
        self.assertEqual(self.finance.contract_status, 'unsigned')
        self.assertIsNone(self.finance.contract_signed_at)

    def test_sign_contract_other_owner(self):
        """Test that only the owner may sign"""
        other = APIClient()
        other.force_authenticate(user=UserPrincipal(id="user-2"))
        response = self.sign(other)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.finance.refresh_from_db()
        self.assertEqual(self.finance.contract_status, 'unsigned')

    def test_sign_contract_as_admin(self):
        """Test that administrators cannot sign on behalf of the owner"""
        admin = APIClient()
        admin.force_authenticate(user=AdminPrincipal(id="admin-1"))
        response = self.sign(admin)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_sign_contract_not_found(self):
        """Test signing a non-existent finance"""
        url = reverse('finance_sign_contract', args=[uuid.uuid4()])
        response = self.client.post(url, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_sign_contract_deleted(self):
        """Test that soft-deleted finances cannot be signed"""
        self.finance.deleted = True
        self.finance.save()

        response = self.sign()

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_sign_contract_state_changed_concurrently(self):
        """Test that the conditional update refuses a finance signed meanwhile"""
        endpoints = ServiceEndpoints(user_service_url=USERS_URL)
        checks = []

        def check_then_lose_race(finance, principal):
            rules.ensure_can_sign(finance, principal)
            if not checks:
                # another request signs right after our precondition check
                checks.append(finance.pk)
                Finance.objects.filter(pk=finance.pk).update(contract_status='signed')

        with patch('finance_app.api.contracts.ensure_can_sign', side_effect=check_then_lose_race):
            with self.captureOnCommitCallbacks(execute=True) as callbacks:
                with self.assertRaises(ConflictError) as ctx:
                    sign_contract(self.finance.finance_id, self.owner, endpoints=endpoints)

        self.assertEqual(str(ctx.exception.detail), 'This contract has already been signed.')
        self.assertEqual(callbacks, [])
        self.assertEqual(len(mail.outbox), 0)


class SignContractNotificationTest(ContractTestSetup):
    """Test the best-effort notifications after signing"""

    @override_settings(POINTS_SERVICE_URL=POINTS_URL)
    @patch("finance_app.api.integration.requests.post")
    def test_points_service_notified(self, mock_post):
        """Test the payload sent to the points service"""
        mock_post.return_value = Mock(ok=True, status_code=200)

        response = self.sign()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], f"{POINTS_URL}/contracts/completed")
        self.assertEqual(kwargs['json']['userId'], 'user-1')
        self.assertEqual(kwargs['json']['financeId'], str(self.finance.finance_id))
        self.assertEqual(kwargs['json']['contractValue'], 120000.0)
        self.assertIsNotNone(kwargs['json']['contractDate'])
        self.assertEqual(kwargs['headers']['Idempotency-Key'], f"contract-{self.finance.finance_id}")
        self.assertIn('timeout', kwargs)

    @override_settings(POINTS_SERVICE_URL=POINTS_URL)
    @patch("finance_app.api.integration.requests.post")
    def test_points_service_error(self, mock_post):
        """Test that a points service failure does not undo the signature"""
        mock_post.return_value = Mock(ok=False, status_code=500)

        response = self.sign()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.finance.refresh_from_db()
        self.assertEqual(self.finance.contract_status, 'signed')
        self.assertEqual(len(mail.outbox), 1)

    @override_settings(POINTS_SERVICE_URL=POINTS_URL)
    @patch("finance_app.api.integration.requests.post")
    def test_points_service_timeout(self, mock_post):
        """Test that a points service timeout does not undo the signature"""
        mock_post.side_effect = requests.Timeout("too slow")

        response = self.sign()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.finance.refresh_from_db()
        self.assertEqual(self.finance.status, 'in_progress')
        self.assertEqual(len(mail.outbox), 1)

    @patch("finance_app.api.integration.requests.post")
    def test_points_service_not_configured(self, mock_post):
        """Test that no call is made without a points service URL"""
        response = self.sign()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        mock_post.assert_not_called()

    @patch("finance_app.api.notifications.EmailMultiAlternatives.send")
    def test_email_failure(self, mock_send):
        """Test that an e-mail failure does not undo the signature"""
        mock_send.side_effect = SMTPException("mail server down")

        response = self.sign()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.finance.refresh_from_db()
        self.assertEqual(self.finance.contract_status, 'signed')

    @patch("finance_app.api.integration.requests.get")
    def test_email_recipient_from_user_service(self, mock_get):
        """Test that the owner's address is looked up when the token has none"""
        mock_get.return_value = Mock(json=Mock(return_value={
            "user": {"_id": "user-1", "email": "found@test.com", "name": "Found"}}))
        client = APIClient()
        client.force_authenticate(user=UserPrincipal(id="user-1"), token="owner-token")

        response = self.sign(client)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        args, kwargs = mock_get.call_args
        self.assertEqual(args[0], f"{USERS_URL}/user-1")
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer owner-token')
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['found@test.com'])

    @patch("finance_app.api.integration.requests.get")
    def test_email_recipient_unknown(self, mock_get):
        """Test that signing succeeds when no address can be found"""
        mock_get.side_effect = requests.ConnectionError("refused")
        client = APIClient()
        client.force_authenticate(user=UserPrincipal(id="user-1"))

        response = self.sign(client)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 0)
