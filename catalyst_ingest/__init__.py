"""catalyst_ingest – resilient multi-source catalyst news ingestion.

Polls government RSS feeds, scraped government pages and the BSE
announcements API on per-source cadences, gates every source behind a
circuit breaker, and corroborates detected catalysts against live
market data before they are acted on.

Entry points: ``SourceRegistry.fetch_from_sources()`` for one dispatch,
``MarketValidator.validate_with_market()`` for corroboration and
``python -m catalyst_ingest.run`` for the standalone polling loop.
"""
