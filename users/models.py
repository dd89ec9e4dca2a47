# users/models.py
from django.contrib.auth.models import AbstractUser
from django.db import models


class Role(models.Model):
    ADMIN = 'admin'
    DOCTOR = 'doctor'
    REFRACTIONIST = 'refractionist'
    RECEPTIONIST = 'receptionist'
    ACCOUNTANT = 'accountant'
    MEDICINE_SELLER = 'medicine_seller'
    OPTICS_SELLER = 'optics_seller'

    ROLE_CHOICES = [
        (ADMIN, 'Admin'),
        (DOCTOR, 'Doctor'),
        (REFRACTIONIST, 'Refractionist'),
        (RECEPTIONIST, 'Receptionist'),
        (ACCOUNTANT, 'Accountant'),
        (MEDICINE_SELLER, 'Medicine Seller'),
        (OPTICS_SELLER, 'Optics Seller'),
    ]

    MODULES = [
        'dashboard',
        'patients',
        'doctor',
        'vision_test',
        'hospital_account',
        'medicine_account',
        'optics_account',
        'reports',
        'maintenance',
    ]

    DEFAULT_PERMISSIONS = {
        ADMIN: MODULES,
        DOCTOR: ['dashboard', 'patients', 'doctor'],
        REFRACTIONIST: ['dashboard', 'patients', 'vision_test'],
        RECEPTIONIST: ['dashboard', 'patients'],
        ACCOUNTANT: ['dashboard', 'hospital_account', 'medicine_account', 'optics_account', 'reports'],
        MEDICINE_SELLER: ['dashboard', 'medicine_account'],
        OPTICS_SELLER: ['dashboard', 'optics_account'],
    }

    name = models.CharField(max_length=50, unique=True)
    display_name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    permissions = models.JSONField(default=dict, help_text="Module permissions")
    is_default = models.BooleanField(default=False)
    is_archived = models.BooleanField(default=False, help_text="Archived roles are hidden from user assignment")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.display_name

    def is_protected(self):
        """Only admin role is protected from editing"""
        return self.name == self.ADMIN

    @classmethod
    def default_permissions_for(cls, name):
        allowed = cls.DEFAULT_PERMISSIONS.get(name, ['dashboard'])
        return {module: module in allowed for module in cls.MODULES}

    def save(self, *args, **kwargs):
        if self.is_default and not self.permissions:
            self.permissions = self.default_permissions_for(self.name)
        super().save(*args, **kwargs)


class User(AbstractUser):

    role = models.ForeignKey(Role, on_delete=models.PROTECT, null=True, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.get_full_name()} ({self.username})"

    def has_permission(self, module_name):
        """Check if user has permission for a specific module"""
        if self.is_superuser:
            return True
        if not self.role or self.role.is_archived:
            return False
        return bool(self.role.permissions.get(module_name, False))

    @property
    def full_name(self):
        return self.get_full_name() or self.username

    @property
    def is_doctor(self):
        return hasattr(self, 'doctor_profile')
