"""
WSGI config para o projeto Fleex.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'fleex.settings')

application = get_wsgi_application()
