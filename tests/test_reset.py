"""
tests/test_reset.py -- Service-level tests for the password-reset token lifecycle.

Covers:
  - Unknown and malformed emails on request (masked / validation)
  - Link format and what is persisted (hash only, never the raw token)
  - Single use: second redemption fails, password keeps the first new value
  - A new request invalidates every earlier unused token
  - Expiry at one hour, by injected clock (no sleeping)
  - Validation failures do not consume the token
  - Owner deleted between request and redemption: nothing written
  - Concurrent redemption of one token: exactly one winner
  - The raw token never reaches the logs

Uses PasswordResetService against a real UserStore on an isolated database.
The hasher runs with a reduced scrypt cost to keep the suite fast; the
encoding and verification path are the production ones.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text

from auth.models import ROLE_USER, User
from auth.passwords import PasswordHasher
from auth.reset import GENERIC_REQUEST_MESSAGE, PasswordResetService
from auth.store import UserStore
from auth.tokens import hash_reset_token
from core.database import create_db_engine, to_iso
from core.errors import ErrorKind, Failure

CALLBACK = "https://app.example.com"


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(n=2**10)


@pytest.fixture
def store(engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(store, hasher, mailer, clock) -> PasswordResetService:
    return PasswordResetService(store, hasher, mailer, clock=clock)


@pytest.fixture
def user_id(store, hasher) -> str:
    return store.create_user(
        User(email="a@x.com", name="A", password_hash=hasher.hash("oldpass1"), role=ROLE_USER)
    )


def _assert_invalid_or_expired(result) -> None:
    assert isinstance(result, Failure), f"Expected redemption to fail, got {result!r}"
    assert result.error_code == "invalid_or_expired"
    assert result.status_code == 400


class TestRequestReset:
    def test_unknown_email_is_masked(self, service, mailer) -> None:
        result = service.request_reset("ghost@x.com", "Storm", CALLBACK)
        assert isinstance(result, Failure)
        assert result.kind is ErrorKind.NOT_FOUND_MASKED
        assert result.message == GENERIC_REQUEST_MESSAGE
        assert mailer.sent == []

    @pytest.mark.parametrize("email", [None, "", "not-an-email"])
    def test_malformed_email(self, service, email) -> None:
        result = service.request_reset(email, "Storm", CALLBACK)
        assert isinstance(result, Failure)
        assert result.kind is ErrorKind.VALIDATION

    def test_known_email_sends_link(self, service, mailer, user_id) -> None:
        assert service.request_reset("a@x.com", "Storm", CALLBACK) is None
        assert len(mailer.sent) == 1
        sent = mailer.last
        assert sent.to == "a@x.com"
        assert sent.from_name == "Storm"
        assert sent.reset_link == f"{CALLBACK}/reset-password.html?token={sent.token}"

    def test_trailing_slash_on_callback_host(self, service, mailer, user_id) -> None:
        service.request_reset("a@x.com", "Storm", CALLBACK + "/")
        assert mailer.last.reset_link.startswith(f"{CALLBACK}/reset-password.html?token=")

    def test_only_hash_is_persisted(self, service, mailer, store, user_id) -> None:
        service.request_reset("a@x.com", "Storm", CALLBACK)
        raw = mailer.last.token
        (record,) = store.list_reset_tokens(user_id)
        assert record.token_hash == hash_reset_token(raw)
        assert raw not in (record.token_hash, record.id)
        assert record.used is False

    def test_expiry_is_one_hour(self, service, store, clock, user_id) -> None:
        service.request_reset("a@x.com", "Storm", CALLBACK)
        (record,) = store.list_reset_tokens(user_id)
        assert record.expires_at == to_iso(clock.now + timedelta(hours=1))


class TestRedeem:
    def test_success_sets_new_password(self, service, mailer, store, hasher, user_id) -> None:
        service.request_reset("a@x.com", "Storm", CALLBACK)
        assert service.redeem(mailer.last.token, "newpass99") == user_id
        user = store.get_by_email("a@x.com")
        assert hasher.verify("newpass99", user.password_hash)
        assert not hasher.verify("oldpass1", user.password_hash)

    def test_second_redemption_fails(self, service, mailer, store, hasher, user_id) -> None:
        service.request_reset("a@x.com", "Storm", CALLBACK)
        raw = mailer.last.token
        assert service.redeem(raw, "newpass99") == user_id
        _assert_invalid_or_expired(service.redeem(raw, "otherpass1"))
        assert hasher.verify("newpass99", store.get_by_email("a@x.com").password_hash)

    def test_new_request_invalidates_previous(self, service, mailer, store, user_id) -> None:
        service.request_reset("a@x.com", "Storm", CALLBACK)
        first = mailer.last.token
        service.request_reset("a@x.com", "Storm", CALLBACK)
        second = mailer.last.token

        tokens = store.list_reset_tokens(user_id)
        assert len(tokens) == 2
        assert sum(1 for t in tokens if not t.used) == 1, "At most one unused token per user"

        _assert_invalid_or_expired(service.redeem(first, "newpass99"))
        assert service.redeem(second, "newpass99") == user_id

    def test_superseded_token_stays_invalid_after_newer_is_used(self, service, mailer, user_id) -> None:
        service.request_reset("a@x.com", "Storm", CALLBACK)
        first = mailer.last.token
        service.request_reset("a@x.com", "Storm", CALLBACK)
        assert service.redeem(mailer.last.token, "newpass99") == user_id
        _assert_invalid_or_expired(service.redeem(first, "newpass99"))

    def test_expired_token(self, service, mailer, clock, user_id) -> None:
        service.request_reset("a@x.com", "Storm", CALLBACK)
        clock.advance(hours=1, seconds=1)
        _assert_invalid_or_expired(service.redeem(mailer.last.token, "newpass99"))

    def test_token_valid_just_before_expiry(self, service, mailer, clock, user_id) -> None:
        service.request_reset("a@x.com", "Storm", CALLBACK)
        clock.advance(minutes=59, seconds=59)
        assert service.redeem(mailer.last.token, "newpass99") == user_id

    def test_unknown_token(self, service, user_id) -> None:
        _assert_invalid_or_expired(service.redeem("f" * 64, "newpass99"))

    def test_short_password_does_not_consume_token(self, service, mailer, user_id) -> None:
        service.request_reset("a@x.com", "Storm", CALLBACK)
        raw = mailer.last.token
        result = service.redeem(raw, "short")
        assert isinstance(result, Failure)
        assert result.kind is ErrorKind.VALIDATION
        assert result.message == "Password must be at least 8 characters long"
        assert service.redeem(raw, "longenough") == user_id

    @pytest.mark.parametrize("raw, password", [(None, "newpass99"), ("", "newpass99"), ("abc", None), ("abc", "")])
    def test_missing_fields(self, service, raw, password) -> None:
        result = service.redeem(raw, password)
        assert isinstance(result, Failure)
        assert result.message == "Missing token or new password"

    def test_owner_deleted_writes_nothing(self, service, mailer, store, engine, user_id) -> None:
        service.request_reset("a@x.com", "Storm", CALLBACK)
        with engine.begin() as conn:
            conn.execute(text("DELETE FROM auth_users"))
        _assert_invalid_or_expired(service.redeem(mailer.last.token, "newpass99"))
        (record,) = store.list_reset_tokens(user_id)
        assert record.used is False, "Claim must roll back when the owner is gone"


class TestConcurrentRedemption:
    def test_exactly_one_winner(self, tmp_path, hasher) -> None:
        """Eight threads redeem the same token at once; one succeeds, seven get nothing."""
        engine = create_db_engine(f"sqlite:///{tmp_path / 'race.db'}")
        try:
            store = UserStore(engine)
            uid = store.create_user(
                User(email="a@x.com", name="A", password_hash=hasher.hash("oldpass1"), role=ROLE_USER)
            )
            clock = FakeClock()
            mailer_calls: list[str] = []

            class _Mailer:
                def send_password_reset(self, to, from_name, reset_link):
                    mailer_calls.append(reset_link)

            PasswordResetService(store, hasher, _Mailer(), clock=clock).request_reset("a@x.com", "", CALLBACK)
            token_hash = hash_reset_token(mailer_calls[-1].rsplit("=", 1)[1])
            now = to_iso(clock.now)

            workers = 8
            barrier = threading.Barrier(workers)
            results: list[str | None] = [None] * workers
            errors: list[BaseException] = []

            def redeem(i: int) -> None:
                try:
                    barrier.wait()
                    results[i] = store.redeem_reset_token(token_hash, f"hash-{i}", now)
                except BaseException as exc:  # surfaced below
                    errors.append(exc)

            threads = [threading.Thread(target=redeem, args=(i,)) for i in range(workers)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

            assert errors == [], f"Redemption raised: {errors!r}"
            winners = [i for i, r in enumerate(results) if r is not None]
            assert len(winners) == 1, f"Expected exactly one winner, got {winners}"
            assert results[winners[0]] == uid
            assert store.get_by_email("a@x.com").password_hash == f"hash-{winners[0]}"
        finally:
            engine.dispose()


class TestNoTokenLeakage:
    def test_raw_token_never_logged(self, service, mailer, user_id, caplog) -> None:
        with caplog.at_level(logging.DEBUG):
            service.request_reset("a@x.com", "Storm", CALLBACK)
            raw = mailer.last.token
            service.redeem(raw, "newpass99")
        assert raw not in caplog.text
