"""
SQLite persistence: connection management, schema DDL, migrations, repositories.
"""
