"""
Unit tests for the session lifecycle service
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from itertools import chain, repeat
from unittest.mock import MagicMock

import pytest

from sessionkeeper.core.exceptions import SessionStorageError
from sessionkeeper.sessions.service import MAX_ID_ATTEMPTS, SessionService
from sessionkeeper.sessions.sql_repository import SqlAlchemySessionRepository
from tests.utils.factories import SessionFactory

pytestmark = pytest.mark.unit


class TestFindValid:
    def test_returns_stored_session_when_valid(self, service, repository):
        existing = SessionFactory.create("existing-session-id")
        repository.save(existing)

        assert service.find_valid("existing-session-id") is existing

    def test_returns_none_for_unknown_id(self, service):
        assert service.find_valid("unknown-session-id") is None

    def test_returns_none_for_empty_id_without_store_access(self, session_config):
        repository = MagicMock()
        service = SessionService(repository, session_config)

        assert service.find_valid(None) is None
        assert service.find_valid("") is None
        repository.find_by_id.assert_not_called()

    def test_expired_session_is_not_found_and_not_deleted(self, service, repository):
        repository.save(SessionFactory.create_expired("invalid-session-id"))

        assert service.find_valid("invalid-session-id") is None
        assert repository.find_by_id("invalid-session-id") is not None

    def test_expiry_is_exclusive(self, service, repository, clock):
        repository.save(SessionFactory.create("edge-session-id-0001", expires_in=1, now=clock.now))

        assert service.find_valid("edge-session-id-0001") is not None
        clock.advance(1)
        assert service.find_valid("edge-session-id-0001") is None

    def test_storage_error_propagates(self, session_config):
        repository = MagicMock()
        repository.find_by_id.side_effect = SessionStorageError("down")
        service = SessionService(repository, session_config)

        with pytest.raises(SessionStorageError):
            service.find_valid("existing-session-id")


class TestCreate:
    def test_create_persists_anonymous_session(self, service, repository, clock):
        session = service.create('{"ip":"127.0.0.1"}')

        assert repository.find_by_id(session.id) is session
        assert session.user_id is None
        assert session.payload == '{"ip":"127.0.0.1"}'
        assert session.created_at == session.updated_at == clock.now
        assert session.expires_at == clock.now + 3600

    def test_create_generates_unique_ids(self, service):
        ids = {service.create("{}").id for _ in range(50)}

        assert len(ids) == 50

    def test_create_retries_on_id_collision(self, repository, session_config, clock):
        repository.save(SessionFactory.create("taken-session-id-0001"))
        ids = iter(["taken-session-id-0001", "fresh-session-id-0002"])
        service = SessionService(repository, session_config, clock=clock, id_generator=lambda: next(ids))

        session = service.create("{}")

        assert session.id == "fresh-session-id-0002"
        assert len(repository) == 2

    def test_create_raises_storage_error_when_ids_exhausted(self, repository, session_config, clock):
        repository.save(SessionFactory.create("taken-session-id-0001"))
        ids = chain(repeat("taken-session-id-0001", MAX_ID_ATTEMPTS))
        service = SessionService(repository, session_config, clock=clock, id_generator=lambda: next(ids))

        with pytest.raises(SessionStorageError):
            service.create("{}")
        assert len(repository) == 1


class TestTouch:
    def test_touch_extends_session_near_expiry(self, service, repository, clock):
        session = SessionFactory.create("existing-session-id", expires_in=100, now=clock.now)
        repository.save(session)

        service.touch(session)

        assert session.expires_at == clock.now + 3600
        assert session.updated_at == clock.now

    def test_touch_skips_write_when_plenty_of_time_left(self, session_config, clock):
        repository = MagicMock()
        service = SessionService(repository, session_config, clock=clock)
        session = SessionFactory.create("existing-session-id", expires_in=3000, now=clock.now)

        service.touch(session)

        assert session.expires_at == clock.now + 3000
        repository.save.assert_not_called()

    def test_touch_never_shortens_expiry(self, repository, clock):
        from sessionkeeper.sessions.entity import SessionConfig

        # Threshold 1.0 forces a write on every touch
        config = SessionConfig(session_ttl=3600, refresh_threshold=1.0)
        service = SessionService(repository, config, clock=clock)
        session = SessionFactory.create("long-lived-session-id", expires_in=3599, now=clock.now)
        long_lived = SessionFactory.create("longer-lived-session-id", expires_in=100000, now=clock.now)

        service.touch(session)
        service.touch(long_lived)

        assert session.expires_at == clock.now + 3600
        assert long_lived.expires_at == clock.now + 100000


class TestUserAndRemoval:
    def test_assign_user_persists_user_id(self, service, repository, clock):
        session = service.create("{}")
        clock.advance(10)

        service.assign_user(session, 42)

        assert repository.find_by_id(session.id).user_id == 42
        assert session.updated_at == clock.now
        assert session.created_at <= session.updated_at

    def test_find_by_user_returns_only_valid_sessions(self, service, repository):
        repository.save(SessionFactory.create("user-session-id-0001", user_id=3))
        expired = SessionFactory.create_expired("user-session-id-0002")
        expired.user_id = 3
        repository.save(expired)
        repository.save(SessionFactory.create("other-session-id-0003", user_id=4))

        found = service.find_by_user(3)

        assert [s.id for s in found] == ["user-session-id-0001"]

    def test_delete_removes_session(self, service, repository):
        repository.save(SessionFactory.create("existing-session-id"))

        service.delete("existing-session-id")

        assert repository.find_by_id("existing-session-id") is None

    def test_delete_expired_sweeps_only_expired(self, service, repository):
        repository.save(SessionFactory.create_expired("expired-session-0001"))
        repository.save(SessionFactory.create_expired("expired-session-0002"))
        repository.save(SessionFactory.create("live-session-id-0001"))

        assert service.delete_expired() == 2
        assert [s.id for s in repository.find_all()] == ["live-session-id-0001"]


class TestConcurrentCreate:
    def test_racing_creates_with_same_id_store_one_row(self, sql_session_factory, session_config, clock):
        repository = SqlAlchemySessionRepository(sql_session_factory)
        service = SessionService(
            repository, session_config, clock=clock, id_generator=lambda: "constant-session-id-0001"
        )
        barrier = threading.Barrier(2)
        created, errors = [], []

        def worker():
            barrier.wait()
            try:
                created.append(service.create("{}"))
            except SessionStorageError as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert [s.id for s in created] == ["constant-session-id-0001"]
        assert len(errors) == 1
        assert len(repository.find_all()) == 1

    def test_parallel_creates_get_distinct_ids(self, sql_session_factory, session_config):
        repository = SqlAlchemySessionRepository(sql_session_factory)
        service = SessionService(repository, session_config)

        with ThreadPoolExecutor(max_workers=8) as pool:
            sessions = list(pool.map(lambda _: service.create("{}"), range(24)))

        assert len({s.id for s in sessions}) == 24
        assert len(repository.find_all()) == 24
