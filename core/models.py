# core/models.py
from django.db import models


class SystemSetting(models.Model):
    """Key-value settings editable at runtime"""
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Defaults used when a key has never been stored
    DEFAULTS = {
        'hospital_name': ('City Eye Hospital', 'Hospital name for headers, reports and vouchers'),
        'hospital_address': ('Dhaka, Bangladesh', 'Hospital address for printed reports'),
        'hospital_phone': ('+880 1700-000000', 'Hospital phone for printed reports'),
        'currency_symbol': ('৳', 'Currency glyph used when formatting amounts'),
        'dashboard_refresh_seconds': ('10', 'Polling interval of the live dashboards'),
        'reports_page_size': ('20', 'Rows per page on transaction and fund history lists'),
        'optics_low_stock_threshold': ('5', 'Stock quantity at or below which an optics item is flagged'),
        'reports_default_date_range': ('this_month', 'Default range for the reports hub (today, yesterday, last_7_days, last_30_days, this_month, custom)'),
    }

    class Meta:
        verbose_name = 'System Setting'
        verbose_name_plural = 'System Settings'
        ordering = ['key']

    def __str__(self):
        return f"{self.key}: {self.value}"

    @classmethod
    def _default(cls, key, default):
        if default is not None:
            return default
        if key in cls.DEFAULTS:
            return cls.DEFAULTS[key][0]
        return None

    @classmethod
    def get_setting(cls, key, default=None):
        """Get a setting value by key"""
        try:
            setting = cls.objects.get(key=key, is_active=True)
            return setting.value
        except cls.DoesNotExist:
            return cls._default(key, default)

    @classmethod
    def get_int_setting(cls, key, default=None):
        """Get an integer setting value"""
        fallback = cls._default(key, default)
        try:
            setting = cls.objects.get(key=key, is_active=True)
            return int(setting.value)
        except (cls.DoesNotExist, ValueError):
            return int(fallback) if fallback is not None else 0

    @classmethod
    def get_bool_setting(cls, key, default=False):
        """Get a boolean setting value"""
        try:
            setting = cls.objects.get(key=key, is_active=True)
            return setting.value.lower() in ('true', '1', 'yes', 'on')
        except cls.DoesNotExist:
            return default

    @classmethod
    def set_setting(cls, key, value, description=''):
        """Set or update a setting"""
        setting, created = cls.objects.get_or_create(
            key=key,
            defaults={
                'value': str(value),
                'description': description,
                'is_active': True
            }
        )
        if not created:
            setting.value = str(value)
            if description:
                setting.description = description
            setting.is_active = True
            setting.save()
        return setting

    @classmethod
    def initialize_defaults(cls):
        """Create any missing default settings. Returns the number created."""
        created_count = 0
        for key, (value, description) in cls.DEFAULTS.items():
            _, created = cls.objects.get_or_create(
                key=key,
                defaults={
                    'value': value,
                    'description': description,
                    'is_active': True
                }
            )
            if created:
                created_count += 1
        return created_count


class AuditLog(models.Model):
    """Audit trail of record changes and ledger actions"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('login', 'Login'),
        ('logout', 'Logout'),
        ('login_failed', 'Login Failed'),
        ('password_change', 'Password Change'),
        ('status_change', 'Status Change'),
        ('fund_in', 'Fund In'),
        ('fund_out', 'Fund Out'),
        ('export', 'Export'),
    ]

    user = models.ForeignKey('users.User', on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)

    model_name = models.CharField(max_length=50)
    object_id = models.PositiveIntegerField(null=True, blank=True)
    object_repr = models.CharField(max_length=200, blank=True)

    changes = models.JSONField(default=dict, blank=True)
    description = models.TextField(blank=True, help_text="Human-readable description of the change")

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=255, blank=True)

    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['user', 'timestamp'], name='audit_user_time_idx'),
            models.Index(fields=['model_name', 'timestamp'], name='audit_model_time_idx'),
            models.Index(fields=['action', 'timestamp'], name='audit_action_time_idx'),
        ]
        verbose_name = 'Audit Log'
        verbose_name_plural = 'Audit Logs'

    def __str__(self):
        user_str = self.user.username if self.user else 'Anonymous'
        return f"{user_str} {self.action} {self.model_name} at {self.timestamp}"

    @property
    def changed_fields(self):
        if not self.changes:
            return []
        return list(self.changes.keys())

    @classmethod
    def log_action(cls, user, action, model_instance, changes=None, request=None, description=''):
        """
        Log an action with optional change details

        Args:
            user: User who performed the action (can be None for anonymous)
            action: One of ACTION_CHOICES
            model_instance: The model instance acted on
            changes: Dict of field changes {field_name: {'old': ..., 'new': ...}}
            request: HttpRequest for IP/user agent
            description: Human-readable description
        """
        log_entry = cls(
            user=user,
            action=action,
            model_name=model_instance._meta.model_name,
            object_id=model_instance.pk,
            object_repr=str(model_instance)[:200],
            changes=changes or {},
            description=description
        )
        log_entry._attach_request(request)
        log_entry.save()
        return log_entry

    @classmethod
    def log_login(cls, user, request, success=True):
        """Log login attempts"""
        log_entry = cls(
            user=user if success else None,
            action='login' if success else 'login_failed',
            model_name='user',
            object_id=user.pk if user else None,
            object_repr=user.username if user else 'Unknown',
            description=f"User {'logged in successfully' if success else 'failed to login'}"
        )
        log_entry._attach_request(request)
        log_entry.save()
        return log_entry

    @classmethod
    def log_logout(cls, user, request):
        log_entry = cls(
            user=user,
            action='logout',
            model_name='user',
            object_id=user.pk,
            object_repr=user.username,
            description='User logged out'
        )
        log_entry._attach_request(request)
        log_entry.save()
        return log_entry

    def _attach_request(self, request):
        if request is not None:
            self.ip_address = self.get_client_ip(request)
            self.user_agent = request.META.get('HTTP_USER_AGENT', '')[:255]

    @staticmethod
    def get_client_ip(request):
        """Get client IP address from request"""
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR')

    @staticmethod
    def format_field_value(value):
        """Format field value for display in logs"""
        if value is None:
            return 'None'
        if isinstance(value, bool):
            return 'Yes' if value else 'No'
        if isinstance(value, (list, tuple)):
            return ', '.join(str(v) for v in value)
        if hasattr(value, 'strftime'):
            return value.strftime('%Y-%m-%d %H:%M:%S')
        return str(value)

    @staticmethod
    def get_field_changes(old_instance, new_instance, fields_to_ignore=None):
        """
        Compare two instances of the same model.

        Returns:
            Dict of {field_name: {'old': ..., 'new': ..., 'label': ...}}
        """
        if fields_to_ignore is None:
            fields_to_ignore = ['updated_at', 'created_at']

        changes = {}
        for field in new_instance._meta.fields:
            if field.name in fields_to_ignore:
                continue

            old_value = getattr(old_instance, field.name, None)
            new_value = getattr(new_instance, field.name, None)
            if old_value != new_value:
                changes[field.name] = {
                    'old': AuditLog.format_field_value(old_value),
                    'new': AuditLog.format_field_value(new_value),
                    'label': str(field.verbose_name).title(),
                }
        return changes
