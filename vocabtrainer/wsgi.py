"""WSGI config for the vocabtrainer project."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'vocabtrainer.settings')

application = get_wsgi_application()
