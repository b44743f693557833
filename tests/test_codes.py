# tests/test_codes.py
from datetime import timedelta

import pytest

from account_service.codes import choose_channel, generate_code
from account_service.errors import (
    AccountNotFound,
    AttemptsExhausted,
    CodeExpired,
    CodeMismatch,
    DispatchFailure,
    NoContactChannel,
)
from account_service.identifiers import IdentifierKind
from account_service.models import Account
from account_service.notifications import Channel


def test_generate_code_is_six_digits():
    codes = {generate_code() for _ in range(200)}
    assert all(len(c) == 6 and c.isdigit() for c in codes)
    assert len(codes) > 1


def test_generate_code_keeps_leading_zeros(monkeypatch):
    monkeypatch.setattr("account_service.codes.secrets.randbelow", lambda n: 42)
    assert generate_code() == "000042"


def test_channel_selection():
    both = Account(email="a@example.com", phone="13812345678")
    assert choose_channel(IdentifierKind.PHONE, both) == (Channel.SMS, "13812345678")
    assert choose_channel(IdentifierKind.EMAIL, both) == (Channel.EMAIL, "a@example.com")
    assert choose_channel(IdentifierKind.USERNAME, both) == (Channel.EMAIL, "a@example.com")
    phone_only = Account(email=None, phone="13812345678")
    assert choose_channel(IdentifierKind.USERNAME, phone_only) == (Channel.SMS, "13812345678")
    with pytest.raises(NoContactChannel):
        choose_channel(IdentifierKind.USERNAME, Account(email=None, phone=None))


def test_issue_by_phone_sends_sms(service, dispatcher, alice, clock):
    issued = service.codes.issue_code("13812345678")
    assert issued.channel is Channel.SMS
    assert issued.destination == "138*****678"
    channel, destination, code = dispatcher.sent[-1]
    assert (channel, destination) == (Channel.SMS, "13812345678")
    stored = service.store.get(alice.id)
    assert stored.reset_code == code
    assert stored.reset_code_remaining == 5
    assert issued.expires_at == clock.now + timedelta(minutes=10)


def test_issue_by_username_prefers_email(service, dispatcher, alice):
    issued = service.codes.issue_code("alice_01")
    assert issued.channel is Channel.EMAIL
    assert issued.destination == "al***@example.com"
    assert dispatcher.sent[-1][1] == "alice@example.com"


def test_issue_unknown_account(service):
    with pytest.raises(AccountNotFound):
        service.codes.issue_code("ghost@example.com")


def test_issue_without_contact_channel(service, store):
    from account_service.store import AccountDraft

    store.create(AccountDraft(username="lonely", username_normalized="lonely", password_hash="x"))
    with pytest.raises(NoContactChannel):
        service.codes.issue_code("lonely")


def test_dispatch_failure_keeps_code_valid(service, dispatcher, alice):
    dispatcher.fail = True
    with pytest.raises(DispatchFailure):
        service.codes.issue_code("alice@example.com")
    code = dispatcher.last_code
    dispatcher.fail = False
    service.codes.consume_code("alice@example.com", code, "newpass1")
    assert service.hasher.verify("newpass1", service.store.get(alice.id).password_hash)


def test_consume_success_changes_password(service, dispatcher, alice):
    service.codes.issue_code("alice@example.com")
    account = service.codes.consume_code("alice@example.com", dispatcher.last_code, "newpass1")
    assert account.id == alice.id
    stored = service.store.get(alice.id)
    assert stored.reset_code_remaining == 0
    assert service.hasher.verify("newpass1", stored.password_hash)
    assert not service.hasher.verify("secret123", stored.password_hash)


def test_reissue_invalidates_previous_code(service, dispatcher, alice, monkeypatch):
    codes = iter(["111111", "222222"])
    monkeypatch.setattr("account_service.codes.generate_code", lambda: next(codes))
    service.codes.issue_code("alice@example.com")
    service.codes.issue_code("alice@example.com")
    with pytest.raises(CodeMismatch):
        service.codes.consume_code("alice@example.com", "111111", "newpass1")
    service.codes.consume_code("alice@example.com", "222222", "newpass1")


def test_reissue_restores_attempt_budget(service, dispatcher, alice):
    service.codes.issue_code("alice@example.com")
    for _ in range(5):
        with pytest.raises((CodeMismatch, AttemptsExhausted)):
            service.codes.consume_code("alice@example.com", "wrong!", "newpass1")
    service.codes.issue_code("alice@example.com")
    assert service.store.get(alice.id).reset_code_remaining == 5
    service.codes.consume_code("alice@example.com", dispatcher.last_code, "newpass1")


def test_fifth_attempt_is_exhausted_even_with_right_code(service, dispatcher, alice):
    service.codes.issue_code("alice@example.com")
    code = dispatcher.last_code
    wrong = "000000" if code != "000000" else "111111"
    for _ in range(4):
        with pytest.raises(CodeMismatch):
            service.codes.consume_code("alice@example.com", wrong, "newpass1")
    with pytest.raises(AttemptsExhausted):
        service.codes.consume_code("alice@example.com", code, "newpass1")
    with pytest.raises(AttemptsExhausted):
        service.codes.consume_code("alice@example.com", code, "newpass1")
    assert service.hasher.verify("secret123", service.store.get(alice.id).password_hash)


def test_expired_code(service, dispatcher, alice, clock):
    service.codes.issue_code("alice@example.com")
    clock.advance(minutes=10, seconds=1)
    with pytest.raises(CodeExpired):
        service.codes.consume_code("alice@example.com", dispatcher.last_code, "newpass1")
    assert service.store.get(alice.id).reset_code_remaining == 4


def test_code_valid_until_expiry(service, dispatcher, alice, clock):
    service.codes.issue_code("alice@example.com")
    clock.advance(minutes=10)
    service.codes.consume_code("alice@example.com", dispatcher.last_code, "newpass1")


def test_successful_consume_burns_code(service, dispatcher, alice):
    service.codes.issue_code("13812345678")
    code = dispatcher.last_code
    service.codes.consume_code("13812345678", code, "newpass1")
    with pytest.raises(AttemptsExhausted):
        service.codes.consume_code("13812345678", code, "newpass2")


def test_consume_without_issued_code(service, alice):
    with pytest.raises(AttemptsExhausted):
        service.codes.consume_code("alice@example.com", "123456", "newpass1")


def test_consume_unknown_account(service):
    with pytest.raises(AccountNotFound):
        service.codes.consume_code("ghost", "123456", "newpass1")


def test_identifier_forms_share_one_code(service, dispatcher, alice):
    service.codes.issue_code("ALICE_01")
    service.codes.consume_code("13812345678", dispatcher.last_code, "newpass1")


def test_losing_a_redeem_race_is_exhausted(service, dispatcher, alice, monkeypatch):
    service.codes.issue_code("alice@example.com")
    code = dispatcher.last_code
    winner_hash = service.hasher.hash("winner1")
    redeem = service.store.redeem_reset_code

    def burned_by_other_request(account_id, submitted, password_hash):
        assert redeem(account_id, submitted, winner_hash)
        return redeem(account_id, submitted, password_hash)

    monkeypatch.setattr(service.store, "redeem_reset_code", burned_by_other_request)
    with pytest.raises(AttemptsExhausted):
        service.codes.consume_code("alice@example.com", code, "loser12")
    stored = service.store.get(alice.id)
    assert stored.password_hash == winner_hash
    assert stored.reset_code_remaining == 0
