"""
WSGI config for the billing service.

Provided for traditional deployments (gunicorn, mod_wsgi); the ASGI entry
point in config.asgi serves the same application.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/wsgi/
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
