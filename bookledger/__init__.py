"""Book Ledger - core application package

This package contains:
- Ledger state machine (ledger.py)
- Data models (book.py)
- Error taxonomy (errors.py)
- Storage engines (store.py, database.py)
- API endpoints (api.py) and HTTP client (client.py)
- CLI interface (main.py)
"""

__version__ = "1.0.0"
