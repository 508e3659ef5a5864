# backend/wsgi.py
from pos_ledger import create_app

app = create_app()
