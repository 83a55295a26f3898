"""Initialize database (create tables). Run: python backend/init_db.py"""
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app.config import get_settings  # noqa: E402
from app.database import Database  # noqa: E402


def init():
    db = Database(get_settings().database_url)
    db.connect()
    db.disconnect()


if __name__ == '__main__':
    print('Initializing DB...')
    init()
    print('DB initialized.')
