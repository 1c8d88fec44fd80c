"""WSGI entry point: ``gunicorn canteen_api.wsgi:app``."""

from canteen_api.app import create_app

app = create_app()
