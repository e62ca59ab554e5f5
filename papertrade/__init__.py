"""
PaperTrade: a paper trading backend for US stocks.

Application package root. This is a modular monolith using
hexagonal architecture (ports & adapters).

Bounded contexts:
    - trading: Virtual cash ledger, cached market data, watchlist and AI stock picks.

Layers:
    - domain: Ledger rules, valuation, reconciliation, ports (ABCs), errors.
    - application: Use cases, DTOs, read-side caches.
    - infrastructure: Adapters (SQL storage, Polygon, LLM, Supabase Auth) implementing domain ports.
    - interfaces: FastAPI routers, Pydantic schemas, composition root.
    - realtime: Quote change feed and the market data refresh job.
    - shared: Cross-cutting concerns (errors, security, logging).
"""
