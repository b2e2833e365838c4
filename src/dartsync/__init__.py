"""
dartsync - Nakka 01 darts tournament ingestion

Discovers completed tournaments on n01darts.com by keyword, reads their match
lists and per-match player statistics with a real browser, and stores
everything idempotently with resumable import statuses.

Main components:
- scrape: Browser session, discovery, match list and statistics scrapers
- services: Import store, nickname matching and the sync orchestrator
- db: SQLAlchemy models and session management
"""

__version__ = "1.0.0"
