# users/tests.py

from io import StringIO

from django.contrib.auth.models import AnonymousUser
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import IntegrityError, transaction
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase, APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from .models import CustomUser
from .permissions import (
    AdminAccessDenied,
    get_current_user_role,
    is_admin_user,
    require_admin,
    scope_to_caller,
)


class UserAccountTests(APITestCase):
    def setUp(self):
        self.user = CustomUser.objects.create_user(
            username='customer@example.com',
            email='customer@example.com',
            password='password123',
            full_name='Test Customer',
            phone='+919876543210',
        )
        self.admin = CustomUser.objects.create_user(
            username='admin@example.com',
            email='admin@example.com',
            password='password123',
            full_name='Shop Admin',
            role='admin',
        )
        self.client = APIClient()
        self.client.enforce_csrf_checks = False

    def tearDown(self):
        self.client.credentials()

    def _login(self, email, password='password123', **extra):
        return self.client.post(reverse('user-login'), dict(email=email, password=password, **extra), format='json')

    def test_user_registration(self):
        data = {
            'email': 'newcustomer@example.com',
            'password': 'Tr1cky-Pomfret-77',
            'confirm_password': 'Tr1cky-Pomfret-77',
            'full_name': 'New Customer',
            'phone': '+919000000001',
            'city': 'Kochi',
            'postal_code': '682001',
        }
        response = self.client.post(reverse('user-register'), data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['role'], 'customer')

        user = CustomUser.objects.get(email='newcustomer@example.com')
        self.assertEqual(user.city, 'Kochi')
        self.assertTrue(user.check_password('Tr1cky-Pomfret-77'))

    def test_registration_ignores_requested_admin_role(self):
        data = {
            'email': 'sneaky@example.com',
            'password': 'Tr1cky-Pomfret-77',
            'full_name': 'Sneaky',
            'role': 'admin',
        }
        response = self.client.post(reverse('user-register'), data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(CustomUser.objects.get(email='sneaky@example.com').role, 'customer')

    def test_registration_duplicate_email(self):
        data = {
            'email': 'customer@example.com',
            'password': 'Tr1cky-Pomfret-77',
            'full_name': 'Duplicate',
        }
        response = self.client.post(reverse('user-register'), data, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['field_error'], 'email')

    def test_registration_password_mismatch(self):
        data = {
            'email': 'mismatch@example.com',
            'password': 'Tr1cky-Pomfret-77',
            'confirm_password': 'Different-Pomfret-77',
            'full_name': 'Mismatch',
        }
        response = self.client.post(reverse('user-register'), data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('confirm_password', response.data)

    def test_user_login(self):
        response = self._login('customer@example.com')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['user']['email'], 'customer@example.com')

        token = RefreshToken(response.data['refresh'])
        self.assertEqual(token['role'], 'customer')

    def test_user_login_invalid_credentials(self):
        response = self._login('customer@example.com', password='wrongpassword')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error'], 'Invalid credentials')

    def test_inactive_user(self):
        self.user.is_active = False
        self.user.save()
        response = self._login('customer@example.com')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_login_role_mismatch(self):
        response = self._login('customer@example.com', role='admin')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('registered as customer', response.data['error'])

    def test_login_matching_role(self):
        response = self._login('admin@example.com', role='admin')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['role'], 'admin')

    def test_user_logout(self):
        login_response = self._login('customer@example.com')
        self.client.credentials(HTTP_AUTHORIZATION='Bearer ' + login_response.data['access'])

        logout_response = self.client.post(reverse('user-logout'), {
            'refresh': login_response.data['refresh']
        }, format='json')
        self.assertEqual(logout_response.status_code, status.HTTP_205_RESET_CONTENT)

        refresh_response = self.client.post(reverse('token_refresh'), {
            'refresh': login_response.data['refresh']
        }, format='json')
        self.assertEqual(refresh_response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_logout_missing_refresh_token(self):
        login_response = self._login('customer@example.com')
        self.client.credentials(HTTP_AUTHORIZATION='Bearer ' + login_response.data['access'])

        response = self.client.post(reverse('user-logout'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data.get('error'), 'Refresh token is required')

    def test_logout_malformed_refresh_token(self):
        login_response = self._login('customer@example.com')
        self.client.credentials(HTTP_AUTHORIZATION='Bearer ' + login_response.data['access'])

        response = self.client.post(reverse('user-logout'), {'refresh': 'not-a-valid-jwt'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_logout_unauthorized_without_auth_header(self):
        response = self.client.post(reverse('user-logout'), {'refresh': 'dummy'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_profile_update_cannot_change_role_or_email(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.patch(reverse('user-profile'), {
            'city': 'Mangalore',
            'role': 'admin',
            'email': 'other@example.com',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.user.refresh_from_db()
        self.assertEqual(self.user.city, 'Mangalore')
        self.assertEqual(self.user.role, 'customer')
        self.assertEqual(self.user.email, 'customer@example.com')

    def test_profile_requires_authentication(self):
        response = self.client.get(reverse('user-profile'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_role_endpoint(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(reverse('user-role'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'role': 'admin', 'is_admin': True})

        self.client.force_authenticate(user=self.user)
        response = self.client.get(reverse('user-role'))
        self.assertEqual(response.data, {'role': 'customer', 'is_admin': False})


class RoleGateTests(TestCase):
    def setUp(self):
        self.customer = CustomUser.objects.create_user(
            username='c@example.com', email='c@example.com', password='password123', full_name='C'
        )
        self.admin = CustomUser.objects.create_user(
            username='a@example.com', email='a@example.com', password='password123', full_name='A', role='admin'
        )

    def test_anonymous_is_never_admin(self):
        anonymous = AnonymousUser()
        self.assertIsNone(get_current_user_role(anonymous))
        self.assertIsNone(get_current_user_role(None))
        self.assertFalse(is_admin_user(anonymous))
        with self.assertRaises(AdminAccessDenied):
            require_admin(anonymous)

    def test_role_is_read_from_storage(self):
        # A stale in-memory role must not grant admin rights.
        self.customer.role = 'admin'
        self.assertFalse(is_admin_user(self.customer))

        CustomUser.objects.filter(pk=self.admin.pk).update(role='customer')
        self.assertFalse(is_admin_user(self.admin))

    def test_require_admin(self):
        require_admin(self.admin)
        with self.assertRaises(AdminAccessDenied) as ctx:
            require_admin(self.customer)
        self.assertEqual(ctx.exception.status_code, 403)

    def test_scope_to_caller(self):
        qs = CustomUser.objects.all()
        self.assertEqual(scope_to_caller(qs, self.admin).count(), 2)
        self.assertEqual(scope_to_caller(qs, AnonymousUser()).count(), 0)

    def test_role_check_constraint(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                CustomUser.objects.filter(pk=self.customer.pk).update(role='superhero')

    def test_set_user_role_command(self):
        out = StringIO()
        call_command('set_user_role', 'c@example.com', '--role', 'admin', stdout=out)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.role, 'admin')
        self.assertIn('Role updated to admin', out.getvalue())

        with self.assertRaises(CommandError):
            call_command('set_user_role', 'missing@example.com', stdout=StringIO())
