"""Market data interface: cached quotes, search and refresh control."""
