"""
Realtime layer: market data refresh scheduling and quote change streaming.
"""
