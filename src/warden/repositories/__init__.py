"""
Repositories over the SQLite connection.

- **sanction_repo.py**: SanctionStore, the persisted ``(subject, scope) ->
  expiry`` table for one sanction kind.
"""
