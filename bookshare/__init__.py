"""BookShare - community book sharing

This package contains the application modules:
- Terminal client pages (main.py)
- REST client wrapper and services (services/)
- Session persistence (session.py)
- Formatting, validation and output helpers (utils/)
- Backend API and its SQLite catalog (api.py, catalog.py, database.py)
"""

__version__ = "1.0.0"
