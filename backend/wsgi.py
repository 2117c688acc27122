# backend/wsgi.py
from rewards import create_app

app = create_app()
