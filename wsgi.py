"""WSGI entry point for Gunicorn (``gunicorn wsgi:app``)."""
import os

from app import create_app

app = create_app(os.getenv('APP_CONFIG', 'config.Config'))

if __name__ == "__main__":
    app.run()
