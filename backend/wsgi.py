# backend/wsgi.py
from bazaarlink import create_app

app = create_app()
