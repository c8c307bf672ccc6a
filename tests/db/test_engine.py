"""Process engine and the session_scope commit boundary."""

import pytest
from sqlalchemy import func, select

from chama_kernel.db import engine as db_engine
from chama_kernel.models.sequence import SequenceCounter
from chama_kernel.services.sequence_service import SequenceService


@pytest.fixture
def file_db(tmp_path):
    db_engine.init_engine_from_url(f"sqlite:///{tmp_path / 'chama.db'}")
    db_engine.create_tables()
    yield
    db_engine.drop_tables()
    db_engine.get_engine().dispose()


def _counter_value(name):
    with db_engine.session_scope() as session:
        return session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == name)
        ).scalar_one_or_none()


class TestSessionScope:
    def test_commits_on_success(self, file_db):
        with db_engine.session_scope() as session:
            assert SequenceService(session).next_value("receipts") == 1
            assert SequenceService(session).next_value("receipts") == 2

        assert _counter_value("receipts") == 2

    def test_rolls_back_on_error(self, file_db):
        with pytest.raises(RuntimeError):
            with db_engine.session_scope() as session:
                SequenceService(session).next_value("receipts")
                raise RuntimeError("treasurer cancelled")

        assert _counter_value("receipts") is None

    def test_foreign_keys_enforced(self, file_db):
        with db_engine.session_scope() as session:
            assert session.execute(select(func.count()).select_from(SequenceCounter)).scalar() == 0
            assert session.connection().exec_driver_sql("PRAGMA foreign_keys").scalar() == 1
