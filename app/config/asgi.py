"""
ASGI config for the billing service.

Uvicorn uses this entry point to serve the Django application. Views are
synchronous; Django runs them in a thread pool under ASGI, one request
per invocation.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/asgi/
"""

import os

from django.core.asgi import get_asgi_application

# Set the default Django settings module for the ASGI application
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_asgi_application()
