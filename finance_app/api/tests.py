"""
Django REST API Test Suite for the vehicle finance API
CRUD and authorization tests for the finance endpoints
"""

from decimal import Decimal
from unittest.mock import Mock, patch
import os
import subprocess
import sys
import uuid

import requests
from django.conf import settings
from django.core.checks import registry
from django.db import DatabaseError
from django.test import SimpleTestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from finance_app.api.checks import check_service_endpoints
from finance_app.api.rules import AdminPrincipal, UserPrincipal
from finance_app.core_db.models import Finance
from pricing.calculators.pmt import MAX_TERM_MONTHS, compute_installment


@override_settings(VEHICLE_API_URL="", POINTS_SERVICE_URL="")
class APITestSetup(APITestCase):
    """Base test class with an authenticated owner"""

    def setUp(self):
        """Set up principals, an authenticated client and test data"""
        self.owner = UserPrincipal(id="user-1", email="owner@test.com", name="Owner")
        self.other = UserPrincipal(id="user-2", email="other@test.com")
        self.admin = AdminPrincipal(id="admin-1", email="admin@test.com")

        self.client = APIClient()
        self.client.force_authenticate(user=self.owner)

        self.create_test_data()

    def create_test_data(self):
        """Create a finance owned by the test owner"""
        self.finance = Finance.objects.create(
            user_id="user-1",
            brand="Fiat",
            model_name="Argo",
            type="hatch",
            value=Decimal("60000.00"),
            down_payment=Decimal("10000.00"),
            count_of_months=48,
            interest_rate=Decimal("0.08"),
            installment_value=compute_installment(Decimal("50000.00"), Decimal("0.08"), 48),
        )

    def as_principal(self, principal):
        client = APIClient()
        client.force_authenticate(user=principal)
        return client

    def detail_url(self, finance_id=None):
        return reverse('finance_detail', args=[finance_id or self.finance.finance_id])

    def finance_payload(self, **overrides):
        payload = {
            'userId': 'user-1',
            'brand': 'Toyota',
            'modelName': 'Corolla',
            'type': 'sedan',
            'value': '18000.00',
            'downPayment': '0.00',
            'countOfMonths': 12,
            'interestRate': '0.08',
        }
        payload.update(overrides)
        return payload


class FinanceCreateAPITest(APITestSetup):
    """Test finance creation"""

    def test_finance_create_success(self):
        """Test successful finance creation with computed installment"""
        url = reverse('finance_collection')
        response = self.client.post(url, self.finance_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['userId'], 'user-1')
        self.assertEqual(response.data['status'], 'pending')
        self.assertEqual(response.data['contractStatus'], 'unsigned')
        self.assertFalse(response.data['deleted'])
        self.assertEqual(
            response.data['installmentValue'],
            compute_installment(Decimal("18000.00"), Decimal("0.08"), 12))
        self.assertAlmostEqual(float(response.data['installmentValue']), 1565.79, delta=0.01)
        self.assertTrue(Finance.objects.filter(finance_id=response.data['id']).exists())

    def test_finance_create_with_down_payment(self):
        """Test that the installment is computed on value minus down payment"""
        url = reverse('finance_collection')
        response = self.client.post(
            url, self.finance_payload(value='20000.00', downPayment='2000.00'), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(
            response.data['installmentValue'],
            compute_installment(Decimal("18000.00"), Decimal("0.08"), 12))
        finance = Finance.objects.get(finance_id=response.data['id'])
        self.assertEqual(finance.status, 'pending')
        self.assertEqual(finance.principal_amount, Decimal("18000.00"))

    def test_finance_create_keeps_client_installment(self):
        """Test that an explicit installment value is stored as given"""
        url = reverse('finance_collection')
        response = self.client.post(
            url, self.finance_payload(installmentValue='1600.00'), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['installmentValue'], Decimal('1600.00'))

    def test_finance_create_zero_value(self):
        """Test that a non-positive value is rejected and nothing is stored"""
        url = reverse('finance_collection')
        before = Finance.objects.count()
        response = self.client.post(url, self.finance_payload(value='0'), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('value', response.data['errors'])
        self.assertEqual(Finance.objects.count(), before)

    def test_finance_create_down_payment_above_value(self):
        """Test that a down payment larger than the value is rejected"""
        url = reverse('finance_collection')
        response = self.client.post(
            url, self.finance_payload(downPayment='20000.00'), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('downPayment', response.data['errors'])

    def test_finance_create_non_object_payload(self):
        """Test that a JSON array body is rejected as a bad request"""
        url = reverse('finance_collection')
        before = Finance.objects.count()
        response = self.client.post(url, [1, 2], format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Payload must be a JSON object.')
        self.assertEqual(Finance.objects.count(), before)

    def test_finance_create_term_too_long(self):
        """Test that the term is capped"""
        url = reverse('finance_collection')
        response = self.client.post(
            url, self.finance_payload(countOfMonths=MAX_TERM_MONTHS + 1), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('countOfMonths', response.data['errors'])

    def test_finance_create_missing_user_id(self):
        """Test that the owner id is required"""
        url = reverse('finance_collection')
        payload = self.finance_payload()
        del payload['userId']
        response = self.client.post(url, payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'User id is required.')

    def test_finance_create_for_another_user(self):
        """Test that a user cannot create finances for someone else"""
        url = reverse('finance_collection')
        response = self.client.post(url, self.finance_payload(userId='user-2'), format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Finance.objects.filter(user_id='user-2').exists())

    def test_finance_create_with_status(self):
        """Test that a user cannot choose the initial status"""
        url = reverse('finance_collection')
        response = self.client.post(
            url, self.finance_payload(status='approved'), format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_finance_create_as_admin(self):
        """Test that administrators cannot create finances"""
        url = reverse('finance_collection')
        response = self.as_principal(self.admin).post(
            url, self.finance_payload(userId='admin-1'), format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('message', response.data)

    def test_finance_create_without_token(self):
        """Test creation failure without authentication"""
        url = reverse('finance_collection')
        response = APIClient().post(url, self.finance_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    @override_settings(VEHICLE_API_URL="http://vehicles.test/api/car")
    @patch("finance_app.api.integration.requests.get")
    def test_finance_create_with_vehicle_data(self, mock_get):
        """Test that vehicle data fills blank descriptors and is stored"""
        specs = {"brand": "Honda", "modelName": "Civic", "type": "sedan", "year": 2022}
        mock_get.return_value = Mock(json=Mock(return_value=specs))

        url = reverse('finance_collection')
        payload = self.finance_payload()
        del payload['brand']
        response = self.client.post(url, payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['brand'], 'Honda')
        self.assertEqual(response.data['modelName'], 'Corolla')
        self.assertEqual(response.data['vehicleSpecs'], specs)
        self.assertEqual(mock_get.call_args[0][0], "http://vehicles.test/api/car")

    @override_settings(VEHICLE_API_URL="http://vehicles.test/api/car")
    @patch("finance_app.api.integration.requests.get")
    def test_finance_create_vehicle_service_down(self, mock_get):
        """Test that a vehicle lookup failure aborts the creation"""
        mock_get.side_effect = requests.ConnectionError("refused")

        url = reverse('finance_collection')
        before = Finance.objects.count()
        response = self.client.post(url, self.finance_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(Finance.objects.count(), before)


class FinanceListAPITest(APITestSetup):
    """Test finance listing"""

    def test_finance_list_own_only(self):
        """Test that only the principal's finances are listed"""
        Finance.objects.create(
            user_id="user-2", brand="VW", value=Decimal("30000.00"),
            count_of_months=12, installment_value=Decimal("2500.00"))

        response = self.client.get(reverse('finance_collection'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['id'], str(self.finance.finance_id))
        self.assertEqual(response['X-Total-Count'], '1')

    def test_finance_list_not_found(self):
        """Test that a user without finances gets 404"""
        response = self.as_principal(self.other).get(reverse('finance_collection'))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['message'], 'No finances found for this user.')

    def test_finance_list_hides_deleted(self):
        """Test that soft-deleted finances are not listed"""
        self.finance.deleted = True
        self.finance.save()

        response = self.client.get(reverse('finance_collection'))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_finance_list_filter_by_status(self):
        """Test filtering by status"""
        Finance.objects.create(
            user_id="user-1", brand="VW", value=Decimal("30000.00"),
            count_of_months=12, installment_value=Decimal("2500.00"), status="approved")

        response = self.client.get(reverse('finance_collection'), {'status': 'approved'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['status'], 'approved')

    def test_finance_list_pagination(self):
        """Test page size parameter"""
        for i in range(3):
            Finance.objects.create(
                user_id="user-1", brand=f"Brand {i}", value=Decimal("10000.00"),
                count_of_months=10, installment_value=Decimal("1000.00"))

        response = self.client.get(reverse('finance_collection'), {'size': 2})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 4)
        self.assertEqual(len(response.data['results']), 2)
        self.assertIsNotNone(response.data['next'])

    def test_finance_list_as_admin(self):
        """Test that administrators cannot list finances as owners"""
        response = self.as_principal(self.admin).get(reverse('finance_collection'))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    @patch("finance_app.api.views.Finance.objects.filter")
    def test_finance_list_database_error(self, mock_filter):
        """Test that store failures are reported as 500"""
        mock_filter.side_effect = DatabaseError("connection lost")

        response = self.client.get(reverse('finance_collection'))

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertIn('message', response.data)


class FinanceDetailAPITest(APITestSetup):
    """Test finance retrieval"""

    def test_finance_detail(self):
        """Test retrieving an own finance"""
        response = self.client.get(self.detail_url())

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], str(self.finance.finance_id))
        self.assertEqual(response.data['brand'], 'Fiat')
        self.assertEqual(response.data['modelName'], 'Argo')
        self.assertEqual(response.data['value'], Decimal('60000.00'))

    def test_finance_detail_other_owner(self):
        """Test that another user's finance looks missing"""
        response = self.as_principal(self.other).get(self.detail_url())

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_finance_detail_not_found(self):
        """Test finance detail with non-existent id"""
        response = self.client.get(self.detail_url(uuid.uuid4()))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_finance_detail_deleted(self):
        """Test that a soft-deleted finance is hidden from its owner"""
        self.finance.deleted = True
        self.finance.save()

        response = self.client.get(self.detail_url())

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_finance_detail_as_admin(self):
        """Test that administrators cannot read finances as owners"""
        response = self.as_principal(self.admin).get(self.detail_url())

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class FinanceUpdateAPITest(APITestSetup):
    """Test finance updates"""

    def test_finance_patch_recomputes_installment(self):
        """Test that changing the term recomputes the installment"""
        response = self.client.patch(self.detail_url(), {'countOfMonths': 24}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        expected = compute_installment(Decimal("50000.00"), Decimal("0.08"), 24)
        self.assertEqual(response.data['installmentValue'], expected)
        self.finance.refresh_from_db()
        self.assertEqual(self.finance.count_of_months, 24)
        self.assertEqual(self.finance.installment_value, expected)

    def test_finance_patch_descriptor_keeps_installment(self):
        """Test that descriptive changes leave the installment alone"""
        before = self.finance.installment_value
        response = self.client.patch(self.detail_url(), {'brand': 'Chevrolet'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.finance.refresh_from_db()
        self.assertEqual(self.finance.brand, 'Chevrolet')
        self.assertEqual(self.finance.installment_value, before)

    def test_finance_put(self):
        """Test full update of an own finance"""
        response = self.client.put(
            self.detail_url(), self.finance_payload(value='20000.00'), format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.finance.refresh_from_db()
        self.assertEqual(self.finance.brand, 'Toyota')
        self.assertEqual(self.finance.value, Decimal('20000.00'))

    def test_finance_patch_status_forbidden(self):
        """Test that users cannot change the status"""
        response = self.client.patch(self.detail_url(), {'status': 'approved'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.finance.refresh_from_db()
        self.assertEqual(self.finance.status, 'pending')

    def test_finance_patch_change_owner_forbidden(self):
        """Test that users cannot hand a finance to someone else"""
        response = self.client.patch(self.detail_url(), {'userId': 'user-2'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.finance.refresh_from_db()
        self.assertEqual(self.finance.user_id, 'user-1')

    def test_finance_patch_non_object_payload(self):
        """Test that a JSON array body is rejected on update"""
        response = self.client.patch(self.detail_url(), ['brand'], format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Payload must be a JSON object.')

    def test_finance_patch_invalid_value(self):
        """Test that a non-positive value is rejected on update"""
        response = self.client.patch(self.detail_url(), {'value': '-1'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.finance.refresh_from_db()
        self.assertEqual(self.finance.value, Decimal('60000.00'))

    def test_finance_patch_down_payment_above_stored_value(self):
        """Test that the down payment is checked against the stored value"""
        response = self.client.patch(
            self.detail_url(), {'downPayment': '70000.00'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('downPayment', response.data['errors'])

    def test_finance_patch_other_owner(self):
        """Test that another user's finance cannot be updated"""
        response = self.as_principal(self.other).patch(
            self.detail_url(), {'brand': 'VW'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_finance_patch_as_admin(self):
        """Test that administrators cannot update finance content"""
        response = self.as_principal(self.admin).patch(
            self.detail_url(), {'brand': 'VW'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class FinanceAdminAPITest(APITestSetup):
    """Test admin lifecycle operations: status, delete and restore"""

    def setUp(self):
        super().setUp()
        self.admin_client = self.as_principal(self.admin)

    def test_status_update(self):
        """Test that an admin can approve a finance"""
        url = reverse('finance_update_status', args=[self.finance.finance_id])
        response = self.admin_client.patch(url, {'status': 'approved'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'approved')
        self.finance.refresh_from_db()
        self.assertEqual(self.finance.status, 'approved')

    def test_status_update_any_transition(self):
        """Test that admins are not bound to a transition graph"""
        url = reverse('finance_update_status', args=[self.finance.finance_id])
        response = self.admin_client.patch(url, {'status': 'completed'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')

    def test_status_update_invalid(self):
        """Test that unknown statuses are rejected"""
        url = reverse('finance_update_status', args=[self.finance.finance_id])
        response = self.admin_client.patch(url, {'status': 'unknown'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Invalid status.')

    def test_status_update_as_user(self):
        """Test that users cannot use the status endpoint"""
        url = reverse('finance_update_status', args=[self.finance.finance_id])
        response = self.client.patch(url, {'status': 'approved'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.finance.refresh_from_db()
        self.assertEqual(self.finance.status, 'pending')

    def test_status_update_not_found(self):
        """Test status change on a non-existent finance"""
        url = reverse('finance_update_status', args=[uuid.uuid4()])
        response = self.admin_client.patch(url, {'status': 'approved'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_soft_delete(self):
        """Test that an admin soft-deletes a finance"""
        response = self.admin_client.delete(self.detail_url())

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Finance removed successfully.')
        self.finance.refresh_from_db()
        self.assertTrue(self.finance.deleted)

        owner_response = self.client.get(self.detail_url())
        self.assertEqual(owner_response.status_code, status.HTTP_404_NOT_FOUND)

    def test_soft_delete_as_user(self):
        """Test that owners cannot delete their finances"""
        response = self.client.delete(self.detail_url())

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.finance.refresh_from_db()
        self.assertFalse(self.finance.deleted)

    def test_soft_delete_not_found(self):
        """Test deleting a non-existent finance"""
        response = self.admin_client.delete(self.detail_url(uuid.uuid4()))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_restore(self):
        """Test that an admin restores a deleted finance"""
        self.finance.deleted = True
        self.finance.save()

        url = reverse('finance_restore', args=[self.finance.finance_id])
        response = self.admin_client.patch(url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.finance.refresh_from_db()
        self.assertFalse(self.finance.deleted)

    def test_restore_never_deleted(self):
        """Test that restoring an active finance succeeds and changes nothing"""
        url = reverse('finance_restore', args=[self.finance.finance_id])
        response = self.admin_client.patch(url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.finance.refresh_from_db()
        self.assertFalse(self.finance.deleted)

    def test_restore_as_user(self):
        """Test that users cannot restore finances"""
        self.finance.deleted = True
        self.finance.save()

        url = reverse('finance_restore', args=[self.finance.finance_id])
        response = self.client.patch(url)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.finance.refresh_from_db()
        self.assertTrue(self.finance.deleted)


class AppStartupTest(SimpleTestCase):
    """Test that the project boots under its real settings"""

    def test_django_setup_in_fresh_interpreter(self):
        """Test app loading, URLconf import and system checks from a clean process"""
        env = dict(os.environ, DJANGO_SETTINGS_MODULE='finance_app.settings')
        code = (
            "import django; django.setup(); "
            "from django.urls import get_resolver; get_resolver().url_patterns; "
            "from django.core.management import call_command; call_command('check')"
        )
        result = subprocess.run(
            [sys.executable, '-c', code], cwd=str(settings.BASE_DIR), env=env,
            capture_output=True, text=True, timeout=120)

        self.assertEqual(result.returncode, 0, result.stderr)

    def test_service_checks_registered(self):
        """Test that the app config registers the service endpoint checks"""
        self.assertIn(check_service_endpoints, registry.registry.get_checks())
