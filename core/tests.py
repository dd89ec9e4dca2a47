# core/tests.py
"""
Tests for settings, the audit trail, the landing dashboard and maintenance pages
"""
import sys
from datetime import date, datetime
from io import StringIO
from unittest import mock

import pytz
from django.core.management import call_command
from django.db.migrations.recorder import MigrationRecorder
from django.db.models.signals import post_save, post_delete
from django.test import TestCase
from django.urls import reverse

from accounts.models import Account, AccountCategory
from patients.models import Doctor
from users.models import Role, User
from .models import AuditLog, SystemSetting
from .signals import _should_skip
from .utils import get_local_date, start_of_month


def make_user(username, role_name, **extra):
    role, _ = Role.objects.get_or_create(
        name=role_name,
        defaults={
            'display_name': dict(Role.ROLE_CHOICES)[role_name],
            'permissions': Role.default_permissions_for(role_name),
        }
    )
    return User.objects.create_user(username=username, password='testpass123', role=role, **extra)


class SystemSettingTest(TestCase):

    def test_defaults_without_rows(self):
        self.assertEqual(SystemSetting.get_setting('hospital_name'), 'City Eye Hospital')
        self.assertEqual(SystemSetting.get_int_setting('reports_page_size'), 20)
        self.assertIsNone(SystemSetting.get_setting('no_such_key'))
        self.assertEqual(SystemSetting.get_setting('no_such_key', 'fallback'), 'fallback')

    def test_set_and_read_back(self):
        SystemSetting.set_setting('reports_page_size', 50)
        self.assertEqual(SystemSetting.get_int_setting('reports_page_size'), 50)

    def test_bad_int_falls_back_to_default(self):
        SystemSetting.set_setting('dashboard_refresh_seconds', 'often')
        self.assertEqual(SystemSetting.get_int_setting('dashboard_refresh_seconds'), 10)

    def test_initialize_defaults_is_idempotent(self):
        created = SystemSetting.initialize_defaults()
        self.assertEqual(created, len(SystemSetting.DEFAULTS))
        self.assertEqual(SystemSetting.initialize_defaults(), 0)


class UtilsTest(TestCase):

    def test_start_of_month(self):
        self.assertEqual(start_of_month(date(2024, 2, 29)), date(2024, 2, 1))

    def test_local_date_crosses_midnight(self):
        # 20:30 UTC is 02:30 the next day in Dhaka
        moment = pytz.utc.localize(datetime(2024, 1, 15, 20, 30))
        with self.settings(TIME_ZONE='Asia/Dhaka'):
            self.assertEqual(get_local_date(moment), date(2024, 1, 16))
        self.assertIsNone(get_local_date(None))


class AuditLogTest(TestCase):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        post_save.disconnect(dispatch_uid='log_model_save')
        post_delete.disconnect(dispatch_uid='log_model_delete')

    def test_field_changes(self):
        old = Account(kind=Account.HOSPITAL, name='Hospital Account')
        new = Account(kind=Account.HOSPITAL, name='Main Account')
        changes = AuditLog.get_field_changes(old, new)
        self.assertEqual(list(changes), ['name'])
        self.assertEqual(changes['name']['old'], 'Hospital Account')
        self.assertEqual(changes['name']['new'], 'Main Account')

    def test_format_field_value(self):
        self.assertEqual(AuditLog.format_field_value(True), 'Yes')
        self.assertEqual(AuditLog.format_field_value(None), 'None')
        self.assertEqual(AuditLog.format_field_value(['a', 'b']), 'a, b')

    def test_log_action(self):
        user = make_user('admin1', Role.ADMIN)
        account = Account.for_kind(Account.OPTICS)
        entry = AuditLog.log_action(user, 'export', account, description='Exported statement')
        self.assertEqual(entry.model_name, 'account')
        self.assertEqual(entry.object_id, account.pk)
        self.assertEqual(entry.changed_fields, [])


class DashboardRoutingTest(TestCase):

    def test_doctor_goes_to_doctor_dashboard(self):
        user = make_user('doc', Role.DOCTOR)
        Doctor.objects.create(user=user)
        self.client.force_login(user)
        response = self.client.get(reverse('core:dashboard'))
        self.assertRedirects(response, reverse('patients:doctor_dashboard'), fetch_redirect_response=False)

    def test_refractionist_goes_to_vision_queue(self):
        self.client.force_login(make_user('refraction', Role.REFRACTIONIST))
        response = self.client.get(reverse('core:dashboard'))
        self.assertRedirects(response, reverse('patients:vision_queue'), fetch_redirect_response=False)

    def test_accountant_sees_every_account(self):
        self.client.force_login(make_user('accounts', Role.ACCOUNTANT))
        response = self.client.get(reverse('core:dashboard'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual([row['kind'] for row in response.context['accounts']],
                         [Account.HOSPITAL, Account.MEDICINE, Account.OPTICS])
        self.assertNotIn('visit_stats', response.context)
        self.assertTrue(response.context['module_perms']['reports'])
        self.assertFalse(response.context['module_perms']['maintenance'])

    def test_seller_sees_only_own_account(self):
        Account.for_kind(Account.HOSPITAL).add_fund(100, 'Float')
        self.client.force_login(make_user('medseller', Role.MEDICINE_SELLER))
        response = self.client.get(reverse('core:dashboard'))
        self.assertEqual([row['kind'] for row in response.context['accounts']], [Account.MEDICINE])
        self.assertEqual(list(response.context['recent_transactions']), [])

    def test_receptionist_sees_visit_stats(self):
        self.client.force_login(make_user('reception', Role.RECEPTIONIST))
        response = self.client.get(reverse('core:dashboard'))
        self.assertEqual(response.context['visit_stats']['total'], 0)

    def test_home_redirects_to_dashboard(self):
        response = self.client.get(reverse('core:home'))
        self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)

    def test_anonymous_is_sent_to_login(self):
        response = self.client.get(reverse('core:dashboard'))
        self.assertIn(reverse('users:login'), response['Location'])


class MaintenanceViewsTest(TestCase):

    def setUp(self):
        self.admin = make_user('boss', Role.ADMIN, first_name='Head', last_name='Admin')
        self.client.force_login(self.admin)

    def test_non_admin_is_redirected(self):
        self.client.force_login(make_user('reception', Role.RECEPTIONIST))
        for name in ('maintenance_hub', 'audit_logs', 'settings'):
            response = self.client.get(reverse(f'core:{name}'))
            self.assertRedirects(response, reverse('core:dashboard'), fetch_redirect_response=False)

    def test_maintenance_hub(self):
        response = self.client.get(reverse('core:maintenance_hub'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['stats']['users_count'], 1)

    def test_audit_log_filters(self):
        account = Account.for_kind(Account.HOSPITAL)
        AuditLog.log_action(self.admin, 'export', account, description='Exported statement')
        AuditLog.log_action(self.admin, 'fund_in', account, description='Fund in')

        response = self.client.get(reverse('core:audit_logs'), {'action': 'export'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([log.action for log in response.context['logs']], ['export'])
        self.assertIn('Action: Export', response.context['active_filters'])

    def test_audit_log_ignores_bad_filters(self):
        response = self.client.get(reverse('core:audit_logs'), {'user': 'abc', 'date_from': '2024-13-40'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['active_filters'], [])

    def test_settings_save_writes_audit_log(self):
        SystemSetting.initialize_defaults()
        data = {
            'hospital_name': 'Chattogram Eye Hospital',
            'hospital_phone': SystemSetting.get_setting('hospital_phone'),
            'hospital_address': SystemSetting.get_setting('hospital_address'),
            'currency_symbol': SystemSetting.get_setting('currency_symbol'),
            'dashboard_refresh_seconds': SystemSetting.get_setting('dashboard_refresh_seconds'),
            'reports_page_size': SystemSetting.get_setting('reports_page_size'),
            'optics_low_stock_threshold': SystemSetting.get_setting('optics_low_stock_threshold'),
            'reports_default_date_range': SystemSetting.get_setting('reports_default_date_range'),
        }
        response = self.client.post(reverse('core:settings'), data)
        self.assertRedirects(response, reverse('core:settings'), fetch_redirect_response=False)
        self.assertEqual(SystemSetting.get_setting('hospital_name'), 'Chattogram Eye Hospital')

        log = AuditLog.objects.get(action='update', model_name='systemsetting')
        self.assertEqual(list(log.changes), ['hospital_name'])

    def test_health_check(self):
        response = self.client.get(reverse('health_check'))
        self.assertEqual(response.json()['status'], 'ok')
        self.assertFalse(response.json()['accounts_ready'])

        for kind, _ in Account.KIND_CHOICES:
            Account.for_kind(kind)
        data = self.client.get(reverse('health_check')).json()
        self.assertTrue(data['accounts_ready'])
        self.assertEqual(data['missing_accounts'], [])


class SetupInitialDataCommandTest(TestCase):

    def test_creates_roles_admin_accounts_and_settings(self):
        out = StringIO()
        call_command('setup_initial_data', stdout=out)

        self.assertEqual(Role.objects.count(), len(Role.ROLE_CHOICES))
        admin = User.objects.get(username='admin')
        self.assertTrue(admin.is_superuser)
        self.assertEqual(admin.role.name, Role.ADMIN)
        self.assertEqual(Account.objects.count(), 3)
        self.assertTrue(AccountCategory.objects.filter(
            account__kind=Account.HOSPITAL, category_type=AccountCategory.INCOME, name='OPD Income'
        ).exists())
        self.assertEqual(SystemSetting.objects.count(), len(SystemSetting.DEFAULTS))
        self.assertIn('Initial data setup completed!', out.getvalue())

    def test_running_twice_changes_nothing(self):
        call_command('setup_initial_data', stdout=StringIO())
        categories = AccountCategory.objects.count()
        call_command('setup_initial_data', stdout=StringIO())
        self.assertEqual(AccountCategory.objects.count(), categories)
        self.assertEqual(User.objects.filter(username='admin').count(), 1)


class InitializeSettingsCommandTest(TestCase):

    def test_hospital_name_override(self):
        out = StringIO()
        call_command('initialize_settings', hospital_name='Sylhet Eye Care', stdout=out)
        self.assertEqual(SystemSetting.get_setting('hospital_name'), 'Sylhet Eye Care')
        self.assertIn(f'{len(SystemSetting.DEFAULTS)} created', out.getvalue())

        out = StringIO()
        call_command('initialize_settings', stdout=out)
        self.assertIn('All settings already initialized', out.getvalue())


class AuditSignalSkipTest(TestCase):

    def test_migration_records_are_never_audited(self):
        with mock.patch.object(sys, 'argv', ['manage.py', 'runserver']):
            self.assertTrue(_should_skip(MigrationRecorder.Migration, MigrationRecorder.Migration()))
            self.assertFalse(_should_skip(Account, Account(kind=Account.HOSPITAL)))

    def test_pytest_runner_skips_model_audit(self):
        for argv in (['/venv/bin/pytest', '-q'], ['/venv/lib/site-packages/pytest/__main__.py']):
            with mock.patch.object(sys, 'argv', argv):
                self.assertTrue(_should_skip(Account, Account(kind=Account.HOSPITAL)))

    def test_marked_instance_is_skipped(self):
        account = Account(kind=Account.HOSPITAL)
        account._skip_audit_log = True
        with mock.patch.object(sys, 'argv', ['manage.py', 'runserver']):
            self.assertTrue(_should_skip(Account, account))
