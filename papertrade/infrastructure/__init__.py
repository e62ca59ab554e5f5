"""
Infrastructure layer package.

Concrete adapters for the domain ports: SQL storage for the ledger,
market data cache and watchlist, plus HTTP clients for the market data
provider, the recommendation model and the identity provider.
"""
