"""
Health check endpoints

- /health/        liveness (is the app running?)
- /health/ready/  readiness (database and cache reachable)
- /health/deep/   latency of each backend plus model counts
"""
import time
import logging
from django.http import JsonResponse
from django.db import connection, DatabaseError
from django.core.cache import cache
from django.urls import path
from django.views.decorators.http import require_GET
from django.views.decorators.csrf import csrf_exempt

logger = logging.getLogger(__name__)


def _timed(check):
    """Run a check, returning (ok, latency_ms, error)"""
    start = time.time()
    try:
        ok = check()
        error = None if ok else 'check failed'
    except Exception as e:
        logger.error(f'Health check - {check.__name__} error: {e}')
        ok, error = False, str(e)
    return ok, round((time.time() - start) * 1000, 2), error


def _check_database():
    with connection.cursor() as cursor:
        cursor.execute('SELECT 1')
        return cursor.fetchone() is not None


def _check_cache():
    cache_key = 'health_check_test'
    cache.set(cache_key, 'ok', 10)
    ok = cache.get(cache_key) == 'ok'
    cache.delete(cache_key)
    return ok


def _model_counts():
    from django.contrib.auth import get_user_model
    from agencies.models import Agency
    from residences.models import Residence, Lot
    from payments.models import Payment
    return {
        'agencies': Agency.objects.count(),
        'users': get_user_model().objects.count(),
        'residences': Residence.objects.count(),
        'lots': Lot.objects.count(),
        'payments': Payment.objects.count(),
    }


@csrf_exempt
@require_GET
def health_check(request):
    """Basic health check - returns 200 if app is running"""
    return JsonResponse({'status': 'healthy', 'timestamp': time.time()})


@csrf_exempt
@require_GET
def readiness_check(request):
    """Readiness check - database and cache connectivity"""
    checks, errors = {}, []
    for name, check in (('database', _check_database), ('cache', _check_cache)):
        ok, _, error = _timed(check)
        checks[name] = ok
        if error:
            errors.append(f'{name}: {error}')

    ready = all(checks.values())
    return JsonResponse({
        'status': 'ready' if ready else 'not_ready',
        'timestamp': time.time(),
        'checks': checks,
        'errors': errors or None,
    }, status=200 if ready else 503)


@csrf_exempt
@require_GET
def deep_health_check(request):
    """Deep health check - latencies and model counts, use sparingly"""
    checks, errors = {}, []
    for name, check in (('database', _check_database), ('cache', _check_cache)):
        ok, latency, error = _timed(check)
        checks[name] = {'status': ok, 'latency_ms': latency if ok else None}
        if error:
            errors.append(f'{name}: {error}')

    try:
        checks['models'] = {'status': True, 'details': _model_counts()}
    except DatabaseError as e:
        logger.error(f'Deep health check - Model error: {e}')
        checks['models'] = {'status': False, 'details': {}}
        errors.append(f'models: {e}')

    healthy = checks['database']['status'] and checks['cache']['status']
    return JsonResponse({
        'status': 'healthy' if healthy else 'unhealthy',
        'timestamp': time.time(),
        'checks': checks,
        'errors': errors or None,
    }, status=200 if healthy else 503)


def get_health_urls():
    """URL patterns for the health endpoints"""
    return [
        path('health/', health_check, name='health_check'),
        path('health/ready/', readiness_check, name='readiness_check'),
        path('health/deep/', deep_health_check, name='deep_health_check'),
    ]
