"""
Domain layer package.

Ledger rules, valuation and port interfaces. No framework imports and
no IO.
"""
