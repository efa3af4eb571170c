from inkwell.db import create_db_and_tables
from inkwell.core.config import settings

if __name__ == "__main__":
    print(f"Creating tables in {settings.DATABASE_URL.split('@')[-1]}...")
    try:
        create_db_and_tables()
        print("Tables created successfully!")
    except Exception as e:
        print(f"Error creating tables: {e}")
        raise SystemExit(1)
