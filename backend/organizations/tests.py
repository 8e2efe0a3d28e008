"""
Test suite for Organizations module
Tests: organization lifecycle, membership, tenant resolution middleware and permissions
"""
from datetime import timedelta
from django.core.management import call_command
from django.test import TestCase, RequestFactory, override_settings
from django.utils import timezone
from io import StringIO
from rest_framework import status
from backend.core.model_cache import get_cached_organization, get_cached_organization_by_subdomain
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient, org_url, clear_cache
from backend.organizations.middleware import resolve_organization, is_platform_host
from backend.organizations.models import Organization, Role, OrganizationMember, OrganizationInvitation
from backend.organizations.services import (
    OrganizationError, create_organization, check_subdomain_available, check_slug_available,
    get_default_organization, update_settings, add_member, update_member_role, remove_member,
    set_default_organization, create_invitation, accept_invitation, cancel_invitation,
    resend_invitation, expire_old_invitations,
)


class OrganizationServiceTests(TestCase):
    """Test organization creation and availability checks"""

    def setUp(self):
        clear_cache()
        self.user = TestDataFactory.create_user()

    def test_create_organization_makes_owner(self):
        organization = create_organization(self.user, {'name': 'Fresas Don Pepe', 'slug': 'fresas-don-pepe'})
        membership = OrganizationMember.objects.get(organization=organization, user=self.user)
        self.assertEqual(membership.role.name, Role.OWNER)
        self.assertTrue(membership.is_default)

    def test_second_organization_is_not_default(self):
        create_organization(self.user, {'name': 'Uno', 'slug': 'uno'})
        second = create_organization(self.user, {'name': 'Dos', 'slug': 'dos'})
        membership = OrganizationMember.objects.get(organization=second, user=self.user)
        self.assertFalse(membership.is_default)
        self.assertEqual(get_default_organization(self.user).slug, 'uno')

    def test_duplicate_slug_rejected(self):
        create_organization(self.user, {'name': 'Uno', 'slug': 'uno'})
        with self.assertRaises(OrganizationError):
            create_organization(self.user, {'name': 'Otro', 'slug': 'uno'})

    def test_reserved_subdomain_unavailable(self):
        self.assertFalse(check_subdomain_available('www'))
        self.assertFalse(check_subdomain_available('admin'))
        self.assertTrue(check_subdomain_available('mi-tienda'))

    def test_taken_subdomain_unavailable(self):
        TestDataFactory.create_organization(subdomain='fresas')
        self.assertFalse(check_subdomain_available('fresas'))
        self.assertFalse(check_subdomain_available('FRESAS'))

    def test_check_slug_available(self):
        TestDataFactory.create_organization(slug='tomada')
        self.assertFalse(check_slug_available('tomada'))
        self.assertTrue(check_slug_available('libre'))

    def test_update_settings_merges(self):
        organization = TestDataFactory.create_organization(settings={'theme': {'primary': '#f00'}})
        update_settings(organization, {'contact': {'phone': '8888'}})
        organization.refresh_from_db()
        self.assertEqual(organization.settings['theme'], {'primary': '#f00'})
        self.assertEqual(organization.settings['contact'], {'phone': '8888'})

    def test_no_default_organization(self):
        self.assertIsNone(get_default_organization(self.user))


@override_settings(BASE_DOMAIN='example.com', ALLOWED_HOSTS=['*'])
class OrganizationResolutionTests(TestCase):
    """Test tenant resolution priority: route, header, subdomain, custom domain, query"""

    def setUp(self):
        clear_cache()
        self.factory = RequestFactory()
        self.by_route = TestDataFactory.create_organization(slug='route-org')
        self.by_header = TestDataFactory.create_organization(slug='header-org')
        self.by_subdomain = TestDataFactory.create_organization(slug='sub-org', subdomain='fresas')
        self.by_domain = TestDataFactory.create_organization(slug='domain-org', custom_domain='www.fresas.cr')

    def test_route_wins(self):
        request = self.factory.get('/', HTTP_HOST='fresas.example.com', HTTP_X_ORGANIZATION_ID=str(self.by_header.pk))
        organization, source = resolve_organization(request, {'org_id': self.by_route.pk})
        self.assertEqual(organization, self.by_route)
        self.assertEqual(source, 'route')

    def test_unknown_route_org_does_not_fall_back(self):
        request = self.factory.get('/', HTTP_HOST='fresas.example.com')
        organization, source = resolve_organization(request, {'org_id': 999999})
        self.assertIsNone(organization)

    def test_header_before_subdomain(self):
        request = self.factory.get('/', HTTP_HOST='fresas.example.com', HTTP_X_ORGANIZATION_ID=str(self.by_header.pk))
        organization, source = resolve_organization(request)
        self.assertEqual(organization, self.by_header)
        self.assertEqual(source, 'header')

    def test_subdomain(self):
        request = self.factory.get('/', HTTP_HOST='fresas.example.com:8000')
        organization, source = resolve_organization(request)
        self.assertEqual(organization, self.by_subdomain)
        self.assertEqual(source, 'subdomain')

    def test_custom_domain(self):
        request = self.factory.get('/', HTTP_HOST='www.fresas.cr')
        organization, source = resolve_organization(request)
        self.assertEqual(organization, self.by_domain)
        self.assertEqual(source, 'custom_domain')

    def test_custom_domain_ending_in_base_domain(self):
        lookalike = TestDataFactory.create_organization(slug='lookalike-org', custom_domain='notexample.com')
        request = self.factory.get('/', HTTP_HOST='notexample.com')
        organization, source = resolve_organization(request)
        self.assertEqual(organization, lookalike)
        self.assertEqual(source, 'custom_domain')

    def test_is_platform_host(self):
        self.assertTrue(is_platform_host('example.com', 'example.com'))
        self.assertTrue(is_platform_host('www.example.com', 'example.com'))
        self.assertFalse(is_platform_host('notexample.com', 'example.com'))

    def test_query_parameter(self):
        request = self.factory.get('/', {'organizationId': self.by_route.pk}, HTTP_HOST='example.com')
        organization, source = resolve_organization(request)
        self.assertEqual(organization, self.by_route)
        self.assertEqual(source, 'query')

    def test_main_domain_has_no_organization(self):
        request = self.factory.get('/', HTTP_HOST='example.com')
        self.assertEqual(resolve_organization(request), (None, None))

    def test_inactive_organization_not_resolved(self):
        self.by_subdomain.is_active = False
        self.by_subdomain.save()
        request = self.factory.get('/', HTTP_HOST='fresas.example.com')
        self.assertEqual(resolve_organization(request), (None, None))

    def test_cache_invalidated_on_subdomain_change(self):
        self.assertEqual(get_cached_organization_by_subdomain('fresas'), self.by_subdomain)
        self.by_subdomain.subdomain = 'moras'
        self.by_subdomain.save()
        self.assertIsNone(get_cached_organization_by_subdomain('fresas'))
        self.assertEqual(get_cached_organization_by_subdomain('moras'), self.by_subdomain)

    def test_cached_organization_by_id(self):
        self.assertEqual(get_cached_organization(self.by_route.pk), self.by_route)
        self.assertIsNone(get_cached_organization('not-a-number'))


class UserScopedAPITests(TestCase):
    """Test /api/user/<user_id>/... endpoints"""

    def setUp(self):
        clear_cache()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_organization(self):
        data = {'name': 'Fresas Don Pepe', 'slug': 'fresas-don-pepe', 'subdomain': 'fresas_pepe'}
        response = self.client.post(f'/api/user/{self.user.pk}/organizations/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        data['subdomain'] = 'fresas-pepe'
        response = self.client.post(f'/api/user/{self.user.pk}/organizations/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['subdomain'], 'fresas-pepe')
        self.assertTrue(OrganizationMember.objects.filter(user=self.user, organization_id=response.data['id']).exists())

    def test_create_organization_reserved_subdomain(self):
        data = {'name': 'API', 'slug': 'api-store', 'subdomain': 'api'}
        response = self.client.post(f'/api/user/{self.user.pk}/organizations/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_organizations(self):
        TestDataFactory.create_organization(owner=self.user)
        TestDataFactory.create_organization()
        response = self.client.get(f'/api/user/{self.user.pk}/organizations/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_default_organization(self):
        response = self.client.get(f'/api/user/{self.user.pk}/organizations/default/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data)

        organization = TestDataFactory.create_organization(owner=self.user)
        response = self.client.get(f'/api/user/{self.user.pk}/organizations/default/')
        self.assertEqual(response.data['id'], organization.id)

    def test_memberships(self):
        TestDataFactory.create_organization(owner=self.user)
        response = self.client.get(f'/api/user/{self.user.pk}/memberships/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['role']['name'], Role.OWNER)

    def test_route_user_must_match(self):
        other = TestDataFactory.create_user()
        response = self.client.get(f'/api/user/{other.pk}/organizations/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class OrganizationScopedAPITests(TestCase):
    """Test /api/user/<user_id>/organization/<org_id>/... organization endpoints"""

    def setUp(self):
        clear_cache()
        self.owner = TestDataFactory.create_user()
        self.organization = TestDataFactory.create_organization(owner=self.owner, subdomain='fresas')
        self.staff = TestDataFactory.create_user()
        TestDataFactory.add_member(self.organization, self.staff, role=Role.STAFF)
        self.client = AuthenticatedAPIClient()

    def test_detail_for_member(self):
        self.client.authenticate_user(self.staff)
        response = self.client.get(org_url(self.staff, self.organization))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['slug'], self.organization.slug)

    def test_staff_cannot_update(self):
        self.client.authenticate_user(self.staff)
        response = self.client.patch(org_url(self.staff, self.organization), {'name': 'Nuevo'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_owner_updates_subdomain(self):
        self.client.authenticate_user(self.owner)
        response = self.client.patch(org_url(self.owner, self.organization), {'subdomain': 'moras'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.organization.refresh_from_db()
        self.assertEqual(self.organization.subdomain, 'moras')

    def test_non_member_forbidden(self):
        outsider = TestDataFactory.create_user()
        self.client.authenticate_user(outsider)
        response = self.client.get(org_url(outsider, self.organization))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unknown_organization(self):
        self.client.authenticate_user(self.owner)
        response = self.client.get(f'/api/user/{self.owner.pk}/organization/999999/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unauthenticated(self):
        response = self.client.get(org_url(self.owner, self.organization))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_settings_update_merges(self):
        self.client.authenticate_user(self.owner)
        url = org_url(self.owner, self.organization, 'settings/')
        self.client.patch(url, {'theme': {'primary': '#e11d48'}}, format='json')
        response = self.client.patch(url, {'contact': {'whatsapp': '50688887777'}}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['theme'], {'primary': '#e11d48'})
        self.assertEqual(response.data['contact'], {'whatsapp': '50688887777'})

    def test_members_list(self):
        self.client.authenticate_user(self.staff)
        response = self.client.get(org_url(self.staff, self.organization, 'members/'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)


class MembershipServiceTests(TestCase):
    """Test adding, re-roling and removing members"""

    def setUp(self):
        clear_cache()
        self.owner = TestDataFactory.create_user()
        self.organization = TestDataFactory.create_organization(owner=self.owner)
        self.owner_member = OrganizationMember.objects.get(organization=self.organization, user=self.owner)

    def test_first_membership_is_default(self):
        user = TestDataFactory.create_user()
        member = add_member(self.organization, user)
        self.assertEqual(member.role.name, Role.STAFF)
        self.assertTrue(member.is_default)

        other = add_member(TestDataFactory.create_organization(), user, Role.MANAGER)
        self.assertFalse(other.is_default)

    def test_add_existing_member_rejected(self):
        with self.assertRaises(OrganizationError):
            add_member(self.organization, self.owner)

    def test_unknown_role_rejected(self):
        with self.assertRaises(OrganizationError):
            add_member(self.organization, TestDataFactory.create_user(), 'superuser')

    def test_cannot_demote_last_owner(self):
        with self.assertRaises(OrganizationError):
            update_member_role(self.owner_member, Role.ADMIN)
        self.owner_member.refresh_from_db()
        self.assertEqual(self.owner_member.role.name, Role.OWNER)

    def test_demote_owner_when_another_exists(self):
        add_member(self.organization, TestDataFactory.create_user(), Role.OWNER)
        member = update_member_role(self.owner_member, Role.ADMIN)
        self.assertEqual(member.role.name, Role.ADMIN)

    def test_admin_cannot_grant_owner(self):
        admin = add_member(self.organization, TestDataFactory.create_user(), Role.ADMIN)
        with self.assertRaises(OrganizationError):
            add_member(self.organization, TestDataFactory.create_user(), Role.OWNER, acting_member=admin)
        with self.assertRaises(OrganizationError):
            update_member_role(self.owner_member, Role.STAFF, acting_member=admin)

    def test_cannot_remove_last_owner(self):
        with self.assertRaises(OrganizationError):
            remove_member(self.owner_member)
        self.assertTrue(OrganizationMember.objects.filter(pk=self.owner_member.pk).exists())

    def test_owner_cannot_remove_self(self):
        add_member(self.organization, TestDataFactory.create_user(), Role.OWNER)
        with self.assertRaises(OrganizationError):
            remove_member(self.owner_member, acting_member=self.owner_member)

    def test_removing_default_membership_promotes_next(self):
        user = TestDataFactory.create_user()
        first = add_member(self.organization, user)
        second_organization = TestDataFactory.create_organization()
        add_member(second_organization, user)
        remove_member(first, acting_member=self.owner_member)
        self.assertEqual(get_default_organization(user), second_organization)
        self.assertTrue(OrganizationMember.objects.get(user=user).is_default)

    def test_set_default_organization(self):
        second = TestDataFactory.create_organization()
        add_member(second, self.owner)
        set_default_organization(self.owner, second)
        self.assertEqual(get_default_organization(self.owner), second)
        self.assertEqual(OrganizationMember.objects.filter(user=self.owner, is_default=True).count(), 1)

    def test_set_default_requires_membership(self):
        with self.assertRaises(OrganizationError):
            set_default_organization(self.owner, TestDataFactory.create_organization())


class InvitationServiceTests(TestCase):
    """Test the invitation lifecycle: pending, accepted, cancelled, expired"""

    def setUp(self):
        clear_cache()
        self.owner = TestDataFactory.create_user()
        self.organization = TestDataFactory.create_organization(owner=self.owner)
        self.invitee = TestDataFactory.create_user(email='ana@test.com')

    def invite(self, email='Ana@Test.com', role=Role.MANAGER):
        return create_invitation(self.organization, email, role, invited_by=self.owner)

    def test_create_invitation(self):
        invitation = self.invite()
        self.assertEqual(invitation.email, 'ana@test.com')
        self.assertEqual(invitation.status, OrganizationInvitation.STATUS_PENDING)
        self.assertTrue(invitation.token)
        self.assertGreater(invitation.expires_at, timezone.now() + timedelta(days=6))

    def test_duplicate_pending_rejected(self):
        self.invite()
        with self.assertRaises(OrganizationError):
            self.invite('ana@test.com')

    def test_existing_member_rejected(self):
        with self.assertRaises(OrganizationError):
            create_invitation(self.organization, self.owner.email)

    def test_accept_creates_membership(self):
        invitation = self.invite()
        membership = accept_invitation(invitation, self.invitee)
        self.assertEqual(membership.organization, self.organization)
        self.assertEqual(membership.role.name, Role.MANAGER)
        self.assertEqual(membership.invited_by, self.owner)
        invitation.refresh_from_db()
        self.assertEqual(invitation.status, OrganizationInvitation.STATUS_ACCEPTED)

        with self.assertRaises(OrganizationError):
            accept_invitation(invitation, self.invitee)

    def test_accept_for_other_email_rejected(self):
        invitation = self.invite()
        with self.assertRaises(OrganizationError):
            accept_invitation(invitation, TestDataFactory.create_user(email='otra@test.com'))
        self.assertFalse(OrganizationMember.objects.filter(organization=self.organization,
                                                          user__email='otra@test.com').exists())

    def test_accept_expired(self):
        invitation = self.invite()
        invitation.expires_at = timezone.now() - timedelta(minutes=1)
        invitation.save()
        with self.assertRaises(OrganizationError):
            accept_invitation(invitation, self.invitee)
        invitation.refresh_from_db()
        self.assertEqual(invitation.status, OrganizationInvitation.STATUS_EXPIRED)

    def test_cancel_only_pending(self):
        invitation = cancel_invitation(self.invite())
        self.assertEqual(invitation.status, OrganizationInvitation.STATUS_CANCELLED)
        with self.assertRaises(OrganizationError):
            cancel_invitation(invitation)
        with self.assertRaises(OrganizationError):
            resend_invitation(invitation)

    def test_resend_restarts_expiry(self):
        invitation = self.invite()
        invitation.expires_at = timezone.now() + timedelta(hours=1)
        invitation.save()
        invitation = resend_invitation(invitation)
        self.assertGreater(invitation.expires_at, timezone.now() + timedelta(days=6))

    def test_expire_old_invitations(self):
        stale = self.invite()
        stale.expires_at = timezone.now() - timedelta(days=1)
        stale.save()
        fresh = self.invite('luis@test.com')
        self.assertEqual(expire_old_invitations(), 1)
        stale.refresh_from_db()
        fresh.refresh_from_db()
        self.assertEqual(stale.status, OrganizationInvitation.STATUS_EXPIRED)
        self.assertEqual(fresh.status, OrganizationInvitation.STATUS_PENDING)


class MemberAPITests(TestCase):
    """Test member management endpoints"""

    def setUp(self):
        clear_cache()
        self.owner = TestDataFactory.create_user()
        self.organization = TestDataFactory.create_organization(owner=self.owner)
        self.admin = TestDataFactory.create_user()
        TestDataFactory.add_member(self.organization, self.admin, role=Role.ADMIN)
        self.staff = TestDataFactory.create_user()
        self.staff_member = TestDataFactory.add_member(self.organization, self.staff, role=Role.STAFF)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def url(self, endpoint, user=None):
        return org_url(user or self.owner, self.organization, endpoint)

    def test_owner_adds_member(self):
        user = TestDataFactory.create_user()
        response = self.client.post(self.url('members/'), {'user_id': user.id, 'role': 'manager'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['role']['name'], Role.MANAGER)
        self.assertEqual(response.data['invited_by'], self.owner.id)

    def test_add_unknown_user(self):
        response = self.client.post(self.url('members/'), {'user_id': 999999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_staff_cannot_add(self):
        self.client.authenticate_user(self.staff)
        user = TestDataFactory.create_user()
        response = self.client.post(self.url('members/', self.staff), {'user_id': user.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_change_role(self):
        response = self.client.patch(self.url(f'members/{self.staff_member.id}/'), {'role': 'admin'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.staff_member.refresh_from_db()
        self.assertEqual(self.staff_member.role.name, Role.ADMIN)

    def test_invalid_role(self):
        response = self.client.patch(self.url(f'members/{self.staff_member.id}/'), {'role': 'jefe'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_cannot_promote_to_owner(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(self.url(f'members/{self.staff_member.id}/', self.admin),
                                     {'role': 'owner'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_remove_member(self):
        response = self.client.delete(self.url(f'members/{self.staff_member.id}/'))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(OrganizationMember.objects.filter(pk=self.staff_member.pk).exists())

    def test_cannot_remove_last_owner(self):
        owner_member = OrganizationMember.objects.get(organization=self.organization, user=self.owner)
        self.client.authenticate_user(self.admin)
        response = self.client.delete(self.url(f'members/{owner_member.id}/', self.admin))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_member_of_other_organization_not_found(self):
        foreign = TestDataFactory.add_member(TestDataFactory.create_organization(), TestDataFactory.create_user())
        response = self.client.delete(self.url(f'members/{foreign.id}/'))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_set_default_organization(self):
        second = TestDataFactory.create_organization()
        TestDataFactory.add_member(second, self.owner)
        url = f'/api/user/{self.owner.pk}/organizations/default/{second.id}/'
        response = self.client.put(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_default'])
        response = self.client.get(f'/api/user/{self.owner.pk}/organizations/default/')
        self.assertEqual(response.data['id'], second.id)

    def test_set_default_requires_membership(self):
        other = TestDataFactory.create_organization()
        response = self.client.put(f'/api/user/{self.owner.pk}/organizations/default/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class InvitationAPITests(TestCase):
    """Test invitation endpoints, organization-scoped and public"""

    def setUp(self):
        clear_cache()
        self.owner = TestDataFactory.create_user()
        self.organization = TestDataFactory.create_organization(owner=self.owner, slug='fresas-pepe')
        self.invitee = TestDataFactory.create_user(email='ana@test.com')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def url(self, endpoint):
        return org_url(self.owner, self.organization, endpoint)

    def invite(self):
        response = self.client.post(self.url('invitations/'), {'email': 'ana@test.com', 'role': 'staff'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        return response.data

    def test_create_and_list(self):
        data = self.invite()
        self.assertEqual(data['role']['name'], Role.STAFF)
        self.assertTrue(data['token'])
        response = self.client.get(self.url('invitations/'), {'status': 'pending'})
        self.assertEqual([item['email'] for item in response.data], ['ana@test.com'])

    def test_staff_cannot_invite(self):
        staff = TestDataFactory.create_user()
        TestDataFactory.add_member(self.organization, staff, role=Role.STAFF)
        self.client.authenticate_user(staff)
        url = org_url(staff, self.organization, 'invitations/')
        self.assertEqual(self.client.get(url).status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.post(url, {'email': 'ana@test.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_cancel(self):
        data = self.invite()
        response = self.client.delete(self.url(f"invitations/{data['id']}/"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], OrganizationInvitation.STATUS_CANCELLED)
        response = self.client.delete(self.url(f"invitations/{data['id']}/"))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_resend(self):
        data = self.invite()
        response = self.client.post(self.url(f"invitations/{data['id']}/resend/"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['token'], data['token'])

    def test_public_lookup_by_token(self):
        data = self.invite()
        response = AuthenticatedAPIClient().get(f"/api/invitations/token/{data['token']}/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['organization']['slug'], 'fresas-pepe')
        self.assertEqual(response.data['role'], Role.STAFF)
        self.assertNotIn('token', response.data)

    def test_unknown_token(self):
        response = self.client.get('/api/invitations/token/no-existe/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_accept(self):
        data = self.invite()
        client = AuthenticatedAPIClient().authenticate_user(self.invitee)
        response = client.post(f"/api/invitations/accept/{data['token']}/")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['organization']['id'], self.organization.id)
        self.assertTrue(OrganizationMember.objects.filter(organization=self.organization, user=self.invitee).exists())

        response = client.get(org_url(self.invitee, self.organization, 'members/'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_accept_requires_authentication(self):
        data = self.invite()
        response = AuthenticatedAPIClient().post(f"/api/invitations/accept/{data['token']}/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_accept_for_other_email(self):
        data = self.invite()
        client = AuthenticatedAPIClient().authenticate_user(TestDataFactory.create_user())
        response = client.post(f"/api/invitations/accept/{data['token']}/")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


@override_settings(BASE_DOMAIN='example.com', ALLOWED_HOSTS=['*'])
class PublicOrganizationAPITests(TestCase):
    """Test public organization lookups"""

    def setUp(self):
        clear_cache()
        self.client = AuthenticatedAPIClient()
        self.organization = TestDataFactory.create_organization(slug='fresas-pepe', subdomain='fresas')

    def test_check_slug(self):
        response = self.client.get('/api/organizations/check-slug/fresas-pepe/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['available'])
        response = self.client.get('/api/organizations/check-slug/libre/')
        self.assertTrue(response.data['available'])

    def test_check_subdomain(self):
        response = self.client.get('/api/organizations/check-subdomain/www/')
        self.assertFalse(response.data['available'])

    def test_by_subdomain(self):
        response = self.client.get('/api/organizations/by-subdomain/fresas/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], self.organization.id)
        self.assertNotIn('billing_email', response.data)

    def test_by_slug_not_found(self):
        response = self.client.get('/api/organizations/by-slug/no-existe/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_current_from_host(self):
        response = self.client.get('/api/organizations/current/', HTTP_HOST='fresas.example.com')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['slug'], 'fresas-pepe')

    def test_current_on_main_domain(self):
        response = self.client.get('/api/organizations/current/', HTTP_HOST='example.com')
        self.assertIsNone(response.data)


class SeedRolesCommandTests(TestCase):
    def test_seed_roles_is_idempotent(self):
        out = StringIO()
        call_command('seed_roles', stdout=out)
        call_command('seed_roles', stdout=out)
        for name in (Role.OWNER, Role.ADMIN, Role.MANAGER, Role.STAFF):
            self.assertEqual(Role.objects.filter(name=name, organization=None).count(), 1)
        self.assertIn('Done.', out.getvalue())


class ExpireInvitationsCommandTests(TestCase):
    def test_expires_stale_invitations(self):
        owner = TestDataFactory.create_user()
        organization = TestDataFactory.create_organization(owner=owner)
        invitation = create_invitation(organization, 'ana@test.com', invited_by=owner)
        invitation.expires_at = timezone.now() - timedelta(days=1)
        invitation.save()

        out = StringIO()
        call_command('expire_invitations', stdout=out)
        invitation.refresh_from_db()
        self.assertEqual(invitation.status, OrganizationInvitation.STATUS_EXPIRED)
        self.assertIn('Expired 1', out.getvalue())
