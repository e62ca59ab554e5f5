"""
Application layer package.

Use cases turn requests from the API into calls on the ledger engine
and the domain ports. They depend on ports only, never on adapters.
"""
