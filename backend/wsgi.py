# backend/wsgi.py
from identity import create_app

app = create_app()
