# users/tests.py
"""
Tests for roles, module permissions and the login/logout views
"""
from django.db.models.signals import post_save, post_delete
from django.test import TestCase
from django.urls import reverse

from core.models import AuditLog
from patients.models import Doctor
from .models import Role, User


class RolePermissionTest(TestCase):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        post_save.disconnect(dispatch_uid='log_model_save')
        post_delete.disconnect(dispatch_uid='log_model_delete')

    def test_default_permissions_cover_every_module(self):
        perms = Role.default_permissions_for(Role.RECEPTIONIST)
        self.assertEqual(set(perms), set(Role.MODULES))
        self.assertTrue(perms['patients'])
        self.assertFalse(perms['hospital_account'])

    def test_unknown_role_only_gets_dashboard(self):
        perms = Role.default_permissions_for('janitor')
        self.assertEqual([module for module, allowed in perms.items() if allowed], ['dashboard'])

    def test_default_role_is_filled_on_save(self):
        role = Role.objects.create(name=Role.REFRACTIONIST, display_name='Refractionist', is_default=True)
        self.assertTrue(role.permissions['vision_test'])
        self.assertFalse(role.permissions['doctor'])

    def test_has_permission(self):
        role = Role.objects.create(
            name=Role.ACCOUNTANT,
            display_name='Accountant',
            permissions=Role.default_permissions_for(Role.ACCOUNTANT),
        )
        user = User.objects.create_user(username='acc', password='testpass123', role=role)
        self.assertTrue(user.has_permission('reports'))
        self.assertFalse(user.has_permission('patients'))
        self.assertFalse(user.has_permission('no_such_module'))

        role.is_archived = True
        role.save()
        user.refresh_from_db()
        self.assertFalse(user.has_permission('reports'))

    def test_user_without_role_has_no_access(self):
        user = User.objects.create_user(username='norole', password='testpass123')
        self.assertFalse(user.has_permission('dashboard'))

    def test_superuser_has_every_permission(self):
        admin = User.objects.create_superuser(username='root', password='testpass123')
        self.assertTrue(all(admin.has_permission(module) for module in Role.MODULES))

    def test_full_name_and_doctor_flag(self):
        user = User.objects.create_user(username='mahmud', password='testpass123')
        self.assertEqual(user.full_name, 'mahmud')
        self.assertFalse(user.is_doctor)

        user.first_name, user.last_name = 'Mahmud', 'Hasan'
        user.save()
        Doctor.objects.create(user=user)
        user = User.objects.get(pk=user.pk)
        self.assertEqual(user.full_name, 'Mahmud Hasan')
        self.assertTrue(user.is_doctor)
        self.assertTrue(Role(name=Role.ADMIN).is_protected())


class AuthViewsTest(TestCase):

    def setUp(self):
        role = Role.objects.create(
            name=Role.RECEPTIONIST,
            display_name='Receptionist',
            permissions=Role.default_permissions_for(Role.RECEPTIONIST),
        )
        self.user = User.objects.create_user(username='reception', password='testpass123', role=role)

    def test_login_page_renders(self):
        response = self.client.get(reverse('users:login'))
        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, 'registration/login.html')

    def test_login_redirects_to_dashboard_and_is_logged(self):
        response = self.client.post(reverse('users:login'), {
            'username': 'reception',
            'password': 'testpass123',
        })
        self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)
        self.assertTrue(AuditLog.objects.filter(user=self.user, action='login').exists())

    def test_archived_role_cannot_log_in(self):
        self.user.role.is_archived = True
        self.user.role.save()
        response = self.client.post(reverse('users:login'), {
            'username': 'reception',
            'password': 'testpass123',
        })
        self.assertEqual(response.status_code, 200)
        self.assertNotIn('_auth_user_id', self.client.session)

    def test_failed_login_is_logged(self):
        response = self.client.post(reverse('users:login'), {
            'username': 'reception',
            'password': 'wrong',
        })
        self.assertEqual(response.status_code, 200)
        self.assertTrue(AuditLog.objects.filter(action='login_failed', object_id=self.user.pk).exists())

    def test_logout_clears_session(self):
        self.client.force_login(self.user)
        response = self.client.post(reverse('users:logout'))
        self.assertRedirects(response, reverse('users:login'), fetch_redirect_response=False)
        self.assertIn('no-store', response['Cache-Control'])

        response = self.client.get(reverse('core:dashboard'))
        self.assertIn(reverse('users:login'), response['Location'])

    def test_password_change(self):
        self.client.force_login(self.user)
        response = self.client.post(reverse('users:password_change'), {
            'old_password': 'testpass123',
            'new_password1': 'Vis1on-Clear-2024',
            'new_password2': 'Vis1on-Clear-2024',
        })
        self.assertRedirects(response, reverse('users:password_change'), fetch_redirect_response=False)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('Vis1on-Clear-2024'))
