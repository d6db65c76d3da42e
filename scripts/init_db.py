import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from profileapi.config import get_settings
from profileapi.database.connection import create_db_engine
from profileapi.repositories.sql_adapter import SqlStorageAdapter


def init_db():
    """Create the users / credits / credit_ledger / bonus_claims tables"""
    settings = get_settings()
    engine = create_db_engine(settings)
    try:
        SqlStorageAdapter(engine).create_schema()
        print(f"Database initialized successfully: {engine.url.render_as_string(hide_password=True)}")
    except Exception as e:
        print(f"Database initialization failed: {str(e)}")
        raise
    finally:
        engine.dispose()


if __name__ == "__main__":
    init_db()
