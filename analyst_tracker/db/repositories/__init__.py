"""
Repositories with explicit SQL, one per table family.

Modules:
  base                 — ``BaseRepository`` execution helpers, time codec.
  analyst_repo         — ``analysts``.
  recommendation_repo  — ``analyst_recommendations`` and ``analyst_evaluations``.
  run_repo             — ``run_metadata``.
"""
