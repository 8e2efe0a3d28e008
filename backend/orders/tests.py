"""
Test suite for Orders module
Tests: order listing, detail and status changes
"""
from django.test import TestCase
from rest_framework import status
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient, org_url, clear_cache
from backend.organizations.models import Role


class OrderAPITests(TestCase):
    """Test order endpoints"""

    def setUp(self):
        clear_cache()
        self.owner = TestDataFactory.create_user()
        self.organization = TestDataFactory.create_organization(owner=self.owner)
        self.staff = TestDataFactory.create_user()
        TestDataFactory.add_member(self.organization, self.staff, role=Role.STAFF)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def url(self, endpoint, user=None):
        return org_url(user or self.owner, self.organization, endpoint)

    def test_list_orders(self):
        TestDataFactory.create_order(self.organization)
        TestDataFactory.create_order(TestDataFactory.create_organization())
        response = self.client.get(self.url('orders/'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['item_count'], 2)
        self.assertEqual(response.data[0]['total'], 3000)

    def test_filter_by_status_and_delivery(self):
        TestDataFactory.create_order(self.organization, status='pending', delivery_method='correos')
        TestDataFactory.create_order(self.organization, status='shipped', delivery_method='uber-flash')
        response = self.client.get(self.url('orders/'), {'status': 'shipped'})
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['delivery_method_display'], 'Uber Flash')
        response = self.client.get(self.url('orders/'), {'delivery_method': 'correos'})
        self.assertEqual(len(response.data), 1)

    def test_staff_can_read(self):
        order = TestDataFactory.create_order(self.organization)
        self.client.authenticate_user(self.staff)
        response = self.client.get(self.url(f'orders/{order.id}/', self.staff))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['customer_name'], 'Ana Mora')

    def test_other_organization_order_not_found(self):
        order = TestDataFactory.create_order(TestDataFactory.create_organization())
        response = self.client.get(self.url(f'orders/{order.id}/'))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_update_status(self):
        order = TestDataFactory.create_order(self.organization)
        response = self.client.patch(self.url(f'orders/{order.id}/status/'), {'status': 'confirmed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        order.refresh_from_db()
        self.assertEqual(order.status, 'confirmed')
        log = AuditLog.objects.get(action='status_change', object_id=str(order.id))
        self.assertEqual(log.changes['status'], {'old': 'pending', 'new': 'confirmed'})

    def test_invalid_status(self):
        order = TestDataFactory.create_order(self.organization)
        response = self.client.patch(self.url(f'orders/{order.id}/status/'), {'status': 'lost'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_staff_cannot_change_status(self):
        order = TestDataFactory.create_order(self.organization)
        self.client.authenticate_user(self.staff)
        response = self.client.patch(self.url(f'orders/{order.id}/status/', self.staff),
                                     {'status': 'cancelled'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
