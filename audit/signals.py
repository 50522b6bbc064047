"""
Session authentication events. Everything else is logged explicitly by
the views, where the acting user and the residence are known.
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.signals import user_logged_in, user_logged_out, user_login_failed
from django.dispatch import receiver

from audit.helpers import log_login, log_logout


@receiver(user_logged_in)
def log_user_login(sender, request, user, **kwargs):
    log_login(user, request, success=True)


@receiver(user_logged_out)
def log_user_logout(sender, request, user, **kwargs):
    if user:
        log_logout(user, request)


@receiver(user_login_failed)
def log_failed_login(sender, credentials, request=None, **kwargs):
    # Unknown usernames are not recorded
    user = get_user_model().objects.filter(username=credentials.get('username')).first()
    if user:
        log_login(user, request, success=False)
