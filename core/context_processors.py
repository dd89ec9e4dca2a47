from core.models import SystemSetting
from users.models import Role


def hospital_settings(request):
    """Make hospital identity available in all templates"""
    return {
        'HOSPITAL_NAME': SystemSetting.get_setting('hospital_name'),
        'HOSPITAL_ADDRESS': SystemSetting.get_setting('hospital_address'),
        'HOSPITAL_PHONE': SystemSetting.get_setting('hospital_phone'),
        'CURRENCY_SYMBOL': SystemSetting.get_setting('currency_symbol'),
    }


def module_permissions(request):
    """Role modules of the current user, for showing only the allowed menus"""
    user = getattr(request, 'user', None)
    if user is None or not user.is_authenticated:
        return {'module_perms': {}}
    return {'module_perms': {module: user.has_permission(module) for module in Role.MODULES}}
