"""
Credibility engine — analyst ratings, call evaluation, and weighted consensus.

Modules:
  scoring    — Pure functions: outcome classification, Elo-style update, tiers.
  registry   — Analyst profiles, leaderboard, profile + performance summary.
  ledger     — Records new calls, pinning entry price and benchmark.
  evaluator  — Batch evaluation of matured calls (thread pool per analyst).
  consensus  — Credibility-weighted BUY/HOLD/SELL per ticker.
  engine     — ``CredibilityEngine`` facade wiring config, store and oracle.
"""
