import logging

from django.db import connection, DatabaseError
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

logger = logging.getLogger(__name__)


@require_http_methods(["GET", "HEAD"])
def health_check(request):
    """
    Uptime check. Answers 200 when the database responds and reports
    whether the three cash accounts have been seeded yet.
    """
    from accounts.models import Account

    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
        seeded = set(Account.objects.values_list('kind', flat=True))
    except DatabaseError as e:
        logger.error(f"Health check failed: {str(e)}")
        return JsonResponse({'status': 'error', 'database': False}, status=500)

    missing = [kind for kind, _ in Account.KIND_CHOICES if kind not in seeded]
    if missing:
        logger.warning("Health check: accounts not seeded yet: %s", ', '.join(missing))
    return JsonResponse({
        'status': 'ok',
        'database': True,
        'accounts_ready': not missing,
        'missing_accounts': missing,
    })
