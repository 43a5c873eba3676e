"""
analyst_tracker.reporting — ASCII formatting of engine results for the CLI.

Modules:
  formatters — Leaderboard, consensus, analyst profile, evaluator summary,
               database status.
"""
