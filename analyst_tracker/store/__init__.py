"""
Persistent store layer.

Submodules:
  base          — ``CredibilityStore`` / ``StoreTransaction`` ports
  sqlite_store  — SQLite implementation over the ``db`` repositories
"""
