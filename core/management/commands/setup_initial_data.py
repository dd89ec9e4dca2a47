from django.core.management.base import BaseCommand
from django.contrib.auth import get_user_model

from accounts.models import Account, AccountCategory
from accounts.statements import DAILY_STATEMENT_COLUMNS
from core.models import SystemSetting
from users.models import Role

User = get_user_model()

ROLE_DESCRIPTIONS = {
    Role.ADMIN: 'Full system access',
    Role.DOCTOR: 'Doctor dashboard, patient history and prescriptions',
    Role.REFRACTIONIST: 'Vision test queue and recording',
    Role.RECEPTIONIST: 'Patient registration and visit payments',
    Role.ACCOUNTANT: 'All three ledgers and the reports hub',
    Role.MEDICINE_SELLER: 'Medicine corner ledger and stock reports',
    Role.OPTICS_SELLER: 'Optics corner ledger and stock reports',
}

# Extra categories on top of the named statement columns
EXTRA_CATEGORIES = {
    Account.HOSPITAL: {
        'income': ['Follow-up Fee'],
        'expense': ['Salary', 'Utility Bill', 'Maintenance'],
    },
    Account.MEDICINE: {
        'income': [],
        'expense': ['Salary', 'Utility Bill'],
    },
    Account.OPTICS: {
        'income': [],
        'expense': ['Salary', 'Utility Bill'],
    },
}


class Command(BaseCommand):
    help = 'Set up initial data for the eye hospital system'

    def handle(self, *args, **options):
        self.stdout.write(self.style.SUCCESS('Setting up initial data...'))

        self.create_default_roles()
        self.create_admin_user()
        self.create_accounts()
        self.create_system_settings()

        self.stdout.write(self.style.SUCCESS('Initial data setup completed!'))

    def create_default_roles(self):
        """Create default roles with permissions"""
        self.stdout.write('Creating default roles...')

        for name, display_name in Role.ROLE_CHOICES:
            role, created = Role.objects.get_or_create(
                name=name,
                defaults={
                    'display_name': display_name,
                    'description': ROLE_DESCRIPTIONS.get(name, ''),
                    'permissions': Role.default_permissions_for(name),
                    'is_default': True,
                }
            )
            if created:
                self.stdout.write(f'  Created role: {role.display_name}')
            else:
                self.stdout.write(f'  - Role already exists: {role.display_name}')

    def create_admin_user(self):
        """Create default admin user"""
        self.stdout.write('Creating admin user...')

        admin_role = Role.objects.get(name=Role.ADMIN)

        if not User.objects.filter(username='admin').exists():
            admin_user = User.objects.create_superuser(
                username='admin',
                email='admin@eyehospital.local',
                password='admin123',
                first_name='System',
                last_name='Administrator',
                role=admin_role
            )
            self.stdout.write(f'  Created admin user: {admin_user.username}')
            self.stdout.write('    Username: admin')
            self.stdout.write('    Password: admin123')
            self.stdout.write('    Please change this password after first login!')
        else:
            self.stdout.write('  - Admin user already exists')

    def create_accounts(self):
        """The three ledgers and their default categories"""
        self.stdout.write('Creating accounts...')

        for kind, _ in Account.KIND_CHOICES:
            account = Account.for_kind(kind)
            created_count = 0
            for category_type in (AccountCategory.INCOME, AccountCategory.EXPENSE):
                names = DAILY_STATEMENT_COLUMNS[kind][category_type] + EXTRA_CATEGORIES[kind][category_type]
                for name in names:
                    _, created = AccountCategory.objects.get_or_create(
                        account=account,
                        category_type=category_type,
                        name=name,
                    )
                    if created:
                        created_count += 1
            self.stdout.write(f'  {account.name}: {created_count} categories created')

    def create_system_settings(self):
        self.stdout.write('Creating system settings...')
        created_count = SystemSetting.initialize_defaults()
        self.stdout.write(f'  {created_count} settings created')
