import pytest

from bookledger.database import SQLiteStore
from bookledger.ledger import Ledger
from bookledger.store import MemoryStore

ADMIN = "admin"


@pytest.fixture
def db_file(tmp_path, request):
    # Unique ledger file per test
    return str(tmp_path / f"ledger_{request.node.name}.db")


@pytest.fixture(params=["memory", "sqlite"])
def any_ledger(request, db_file):
    """The same ledger semantics over both storage engines."""
    store = MemoryStore() if request.param == "memory" else SQLiteStore(db_file)
    lib = Ledger(admin=ADMIN, store=store)
    yield lib
    lib.close()
