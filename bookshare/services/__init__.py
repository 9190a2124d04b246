"""BookShare - Services Package

This package contains the client side of the REST contract:
- HTTP client wrapper with uniform error mapping
- Account and session operations
- Catalog operations
"""
