"""
Infrastructure adapters for the trading bounded context.

Each adapter implements a domain port (ABC) and connects
to external systems: the ledger database, the market data provider,
the recommendation model and the identity provider.
"""
