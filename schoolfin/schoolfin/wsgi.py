"""
WSGI config for the schoolfin project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'schoolfin.settings')

application = get_wsgi_application()
