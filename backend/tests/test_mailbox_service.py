import pytest

from rewards.errors import InvalidInputError, NotFoundError
from rewards.models import Notification
from rewards.services import mailbox_service


def test_mailbox_keeps_twenty_most_recent(db_session, make_account):
    account = make_account()
    for n in range(25):
        mailbox_service.post(account.id, f"message {n}")

    notes = mailbox_service.list_notifications(account.id)

    assert len(notes) == 20
    assert notes[0].message == "message 24"
    assert notes[-1].message == "message 5"
    assert db_session.query(Notification).filter_by(account_id=account.id).count() == 20


def test_mailbox_cap_is_per_account(db_session, make_account):
    busy = make_account()
    quiet = make_account()
    mailbox_service.post(quiet.id, "hello")
    for n in range(22):
        mailbox_service.post(busy.id, f"spam {n}")

    assert len(mailbox_service.list_notifications(quiet.id)) == 1
    assert len(mailbox_service.list_notifications(busy.id)) == 20


def test_mark_all_read_is_idempotent(db_session, make_account):
    account = make_account()
    for n in range(3):
        mailbox_service.post(account.id, f"message {n}", "warning")

    assert mailbox_service.unread_count(account.id) == 3
    assert mailbox_service.mark_all_read(account.id) == 3
    assert mailbox_service.mark_all_read(account.id) == 0
    assert mailbox_service.unread_count(account.id) == 0
    assert len(mailbox_service.list_notifications(account.id)) == 3


def test_post_validates_input(db_session, make_account):
    account = make_account()
    with pytest.raises(InvalidInputError):
        mailbox_service.post(account.id, "   ")
    with pytest.raises(InvalidInputError):
        mailbox_service.post(account.id, "hi", "shouting")
    with pytest.raises(NotFoundError):
        mailbox_service.post(987654, "hi")


def test_empty_mailbox(db_session, make_account):
    account = make_account()
    assert mailbox_service.list_notifications(account.id) == []
    assert mailbox_service.mark_all_read(account.id) == 0
