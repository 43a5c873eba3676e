"""
Price oracle layer — the port the engine prices tickers and benchmarks through.

Submodules:
  base            — ``PriceOracle`` ABC and the per-call ``TimeoutPriceOracle``
  polygon_client  — Polygon.io daily-close client (httpx)
  fixture_oracle  — Static in-memory prices for offline runs and tests
  factory         — ``build_price_oracle(PriceOracleConfig)``

Credential placement (.env, gitignored):
  ANALYST_TRACKER_POLYGON_API_KEY — Polygon.io API key
"""
