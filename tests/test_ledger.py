import pytest

from bookledger.book import book_id_for
from bookledger.errors import (
    AlreadyBorrowed,
    AlreadyExists,
    ErrorKind,
    Exhausted,
    InvalidArgument,
    NotBorrowed,
    NotFound,
    Unauthorized,
)
from bookledger.ledger import Ledger

ADMIN = "admin"


def _assert_invariants(lib):
    for book in lib.list_books():
        assert 0 <= book.available_copies <= book.total_copies


def test_register_and_count(any_ledger):
    assert any_ledger.count() == 0

    book_id = any_ledger.register("Sapiens", 1, ADMIN)

    assert any_ledger.count() == 1
    book = any_ledger.get_book("Sapiens")
    assert book.id == book_id
    assert book.available_copies == 1
    assert book.total_copies == 1


def test_book_id_is_hash_of_title(any_ledger):
    book_id = any_ledger.register("Sapiens", 1, ADMIN)
    assert book_id == book_id_for("Sapiens")
    assert any_ledger.get_book_by_id(book_id).title == "Sapiens"


def test_register_duplicate_title(any_ledger):
    any_ledger.register("12 Rules for Life", 2, ADMIN)

    with pytest.raises(AlreadyExists):
        any_ledger.register("12 Rules for Life", 5, ADMIN)

    assert any_ledger.count() == 1
    assert any_ledger.get_book("12 Rules for Life").total_copies == 2


def test_titles_are_case_sensitive(any_ledger):
    any_ledger.register("Sapiens", 1, ADMIN)
    any_ledger.register("sapiens", 1, ADMIN)
    assert any_ledger.count() == 2


def test_register_empty_title(any_ledger):
    with pytest.raises(InvalidArgument, match="empty title"):
        any_ledger.register("", 1, ADMIN)
    assert any_ledger.count() == 0


def test_register_whitespace_title(any_ledger):
    book_id = any_ledger.register("   ", 1, ADMIN)
    assert any_ledger.get_book("   ").id == book_id
    assert any_ledger.count() == 1


@pytest.mark.parametrize("copies", [0, -3, True, 1.5, "2"])
def test_register_invalid_copies(any_ledger, copies):
    with pytest.raises(InvalidArgument, match="copies must be positive"):
        any_ledger.register("Title", copies, ADMIN)
    assert any_ledger.count() == 0


def test_register_by_non_admin(any_ledger):
    with pytest.raises(Unauthorized) as exc_info:
        any_ledger.register("X", 1, "mallory")
    assert exc_info.value.kind is ErrorKind.UNAUTHORIZED
    assert any_ledger.count() == 0


def test_authorization_checked_before_arguments(any_ledger):
    with pytest.raises(Unauthorized):
        any_ledger.register("", 0, "mallory")


def test_borrow_by_two_users(any_ledger):
    book_id = any_ledger.register("X", 2, ADMIN)

    any_ledger.borrow(book_id, "alice")
    assert any_ledger.get_book("X").available_copies == 1
    any_ledger.borrow(book_id, "bob")

    assert any_ledger.get_book("X").available_copies == 0
    assert "X" not in [b.title for b in any_ledger.list_available()]
    _assert_invariants(any_ledger)


def test_borrow_same_book_twice(any_ledger):
    book_id = any_ledger.register("X", 1, ADMIN)
    any_ledger.borrow(book_id, "alice")

    with pytest.raises(AlreadyBorrowed):
        any_ledger.borrow(book_id, "alice")

    assert any_ledger.get_book("X").available_copies == 0
    assert any_ledger.get_borrower_history(book_id) == ["alice"]


def test_borrow_same_book_twice_with_copies_left(any_ledger):
    book_id = any_ledger.register("X", 3, ADMIN)
    any_ledger.borrow(book_id, "alice")

    with pytest.raises(AlreadyBorrowed):
        any_ledger.borrow(book_id, "alice")
    assert any_ledger.get_book("X").available_copies == 2


def test_borrow_exhausted(any_ledger):
    book_id = any_ledger.register("X", 1, ADMIN)
    any_ledger.borrow(book_id, "alice")

    with pytest.raises(Exhausted):
        any_ledger.borrow(book_id, "bob")

    assert any_ledger.get_borrower_history(book_id) == ["alice"]
    assert not any_ledger.is_borrowing(book_id, "bob")


def test_borrow_unknown_book(any_ledger):
    with pytest.raises(NotFound):
        any_ledger.borrow("does-not-exist", "alice")


def test_return_book(any_ledger):
    book_id = any_ledger.register("X", 2, ADMIN)
    before = any_ledger.get_book_by_id(book_id)

    any_ledger.borrow(book_id, "alice")
    assert any_ledger.is_borrowing(book_id, "alice")
    any_ledger.return_(book_id, "alice")

    assert any_ledger.get_book_by_id(book_id) == before
    assert not any_ledger.is_borrowing(book_id, "alice")
    assert any_ledger.get_borrower_history(book_id) == ["alice"]


def test_return_not_borrowed(any_ledger):
    book_id = any_ledger.register("X", 1, ADMIN)

    with pytest.raises(NotBorrowed):
        any_ledger.return_(book_id, "alice")

    assert any_ledger.get_book("X").available_copies == 1
    assert any_ledger.get_borrower_history(book_id) == []


def test_return_someone_elses_loan(any_ledger):
    book_id = any_ledger.register("X", 1, ADMIN)
    any_ledger.borrow(book_id, "alice")

    with pytest.raises(NotBorrowed):
        any_ledger.return_(book_id, "bob")
    assert any_ledger.is_borrowing(book_id, "alice")


def test_return_unknown_book(any_ledger):
    with pytest.raises(NotFound):
        any_ledger.return_("does-not-exist", "alice")


def test_history_keeps_repeat_borrowers_in_order(any_ledger):
    book_id = any_ledger.register("X", 1, ADMIN)
    for borrower in ["alice", "bob", "alice"]:
        any_ledger.borrow(book_id, borrower)
        any_ledger.return_(book_id, borrower)

    assert any_ledger.get_borrower_history(book_id) == ["alice", "bob", "alice"]
    assert any_ledger.get_book("X").available_copies == 1


def test_history_of_unknown_book(any_ledger):
    with pytest.raises(NotFound):
        any_ledger.get_borrower_history("does-not-exist")


def test_get_book_not_found(any_ledger):
    with pytest.raises(NotFound):
        any_ledger.get_book("does not exist")
    with pytest.raises(NotFound):
        any_ledger.get_book_by_id("does-not-exist")


def test_list_available_in_registration_order(any_ledger):
    ids = [any_ledger.register(title, 1, ADMIN) for title in ["Zebra", "Apple", "Mango"]]
    any_ledger.borrow(ids[1], "alice")

    assert [b.title for b in any_ledger.list_available()] == ["Zebra", "Mango"]
    assert [b.title for b in any_ledger.list_books()] == ["Zebra", "Apple", "Mango"]


def test_reads_are_idempotent(any_ledger):
    any_ledger.register("X", 2, ADMIN)
    any_ledger.register("Y", 1, ADMIN)

    assert any_ledger.get_book("X") == any_ledger.get_book("X")
    assert any_ledger.list_available() == any_ledger.list_available()


def test_returned_values_are_snapshots(any_ledger):
    book_id = any_ledger.register("X", 2, ADMIN)
    book = any_ledger.get_book("X")
    available = any_ledger.list_available()
    history = any_ledger.get_borrower_history(book_id)

    any_ledger.borrow(book_id, "alice")

    assert book.available_copies == 2
    assert available[0].available_copies == 2
    assert history == []


def test_admin_required():
    with pytest.raises(InvalidArgument):
        Ledger()


def test_independent_ledgers():
    first = Ledger(admin="alice")
    second = Ledger(admin="bob")

    first.register("X", 1, "alice")

    assert first.count() == 1
    assert second.count() == 0
    with pytest.raises(Unauthorized):
        second.register("X", 1, "alice")
