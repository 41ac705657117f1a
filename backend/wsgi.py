# backend/wsgi.py
from fiado import create_app

app = create_app()
