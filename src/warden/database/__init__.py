"""
SQLite persistence for Warden.

- **db_connection.py**: ConnectionManager owning the single aiosqlite
  connection, with serialised write transactions.
- **db_schema.py**: SchemaManager creating the ``sanctions`` table and
  schema version tracking.
"""
