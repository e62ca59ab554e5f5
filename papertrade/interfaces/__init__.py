"""
Interface layer: FastAPI routers and Pydantic schemas.

Routers translate HTTP into use case calls and back. No business logic.
"""
