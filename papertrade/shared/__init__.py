"""
Shared module package.

Cross-cutting concerns used by every router: error mapping, security
headers, rate limiting and logging configuration.
"""
