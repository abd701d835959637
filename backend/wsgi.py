# backend/wsgi.py
from dealership import create_app

app = create_app()
