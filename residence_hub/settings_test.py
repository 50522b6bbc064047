"""
Test settings: in-memory SQLite, no migrations, fast hashing
"""

from .settings import *  # noqa: F401,F403


class DisableMigrations:
    """Create tables straight from the models"""

    def __contains__(self, item):
        return True

    def __getitem__(self, item):
        return None


DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

MIGRATION_MODULES = DisableMigrations()

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'residence-hub-tests',
    }
}

ENABLE_BACKGROUND_SCHEDULER = False
