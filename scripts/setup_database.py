#!/usr/bin/env python3
"""
Database setup script for SessionKeeper.

This script creates the sessions table for both SQLite and PostgreSQL.
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from sessionkeeper.core.utils.database_helpers import check_database_health, get_database_info
from sessionkeeper.db.init_db import init_database
from sessionkeeper.db.session import engine


def main():
    """Initialize database based on configuration"""
    print("SessionKeeper Database Setup")
    print("=" * 40)

    print(f"Database URL: {engine.url.render_as_string(hide_password=True)}")

    db_info = get_database_info(engine)
    print(f"Database Type: {db_info['type']}")
    print(f"Connected: {db_info['connected']}")

    if db_info['error']:
        print(f"Connection Error: {db_info['error']}")
        return False

    if db_info['version']:
        print(f"Database Version: {db_info['version']}")

    print(f"Existing Tables: {len(db_info['tables'])}")
    for table in sorted(db_info['tables']):
        print(f"  - {table}")

    print("\nInitializing database...")

    try:
        init_database(engine)
        print("Database initialized successfully!")

        health = check_database_health(engine)
        print(f"Health Status: {health['status']}")
        print(f"Table Count: {health['table_count']}")

        if health['status'] != 'healthy':
            print(f"Warning: {health['last_error']}")

        return True

    except Exception as e:
        print(f"Database initialization failed: {e}")
        return False


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
