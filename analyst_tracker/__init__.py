"""
analyst_tracker — analyst credibility and recommendation-evaluation engine.

Records timestamped BUY/HOLD/SELL calls, evaluates them against realized
price moves relative to a sector benchmark, keeps a bounded Elo-style score
per analyst, and derives a credibility-weighted consensus per ticker.
"""

__version__ = "0.1.0"
