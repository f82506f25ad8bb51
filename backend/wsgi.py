# backend/wsgi.py
from prodtrack import create_app

app = create_app()
