"""
Trading use cases: accounts, trades, portfolio, reconciliation,
market data, recommendations and the watchlist.
"""
