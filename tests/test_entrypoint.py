"""Tests for the scheduled entrypoint: exit codes and an end-to-end run on SQLite."""
import asyncio
import json
import pytest

import scripts.process_notification_queue as entrypoint
from models.schemas import NotificationStatus


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "settings.yaml"
    path.write_text("queue:\n  delay_between_emails_ms: 0\n")
    monkeypatch.setenv("NOTIFIER_CONFIG", str(path))
    return path


@pytest.fixture
def sqlite_url(tmp_path, monkeypatch, config_file):
    url = f"sqlite:///{tmp_path / 'stable.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    return url


def _run(coro):
    return asyncio.run(coro)


async def _seed():
    from config.settings import load_settings
    from database.models import HorseRow, OwnerProfileRow, StablemateRow, UserRow
    from database.session import close_db, get_session, init_db
    from database.store import SqlNotificationStore

    load_settings()
    await init_db()
    try:
        async with get_session() as db:
            db.add(UserRow(id="u1", email="owner@example.com"))
            db.add(OwnerProfileRow(id="o1", user_id="u1", official_name="DEMO SAHİP"))
            db.add(StablemateRow(id="s1", name="Ekürim", owner_id="o1"))
            await db.flush()
            db.add(HorseRow(id="h1", name="Bold Ruler", stablemate_id="s1"))
        await SqlNotificationStore().enqueue("newRace", "h1", {
            "horseId": "h1", "raceDate": "2025-03-12T13:30:00.000Z", "position": 3,
        }, job_id="q1")
    finally:
        await close_db()


async def _get_job(job_id):
    from database.session import close_db
    from database.store import SqlNotificationStore
    try:
        return await SqlNotificationStore().get_job(job_id)
    finally:
        await close_db()


def _summary(out: str) -> dict:
    return json.loads(out[out.rindex('{\n  "success"'):])


class TestEntrypoint:

    def test_missing_database_url_exits_1(self, config_file, monkeypatch):
        called = []

        async def fake_run(settings, sleep=None):
            called.append(settings)

        monkeypatch.setattr(entrypoint, "process_notification_queue", fake_run)

        assert entrypoint.main() == 1
        assert called == []

    def test_unhandled_error_exits_1(self, sqlite_url, monkeypatch):
        async def broken(settings, sleep=None):
            raise RuntimeError("database unreachable")

        monkeypatch.setattr(entrypoint, "process_notification_queue", broken)
        assert entrypoint.main() == 1

    def test_completed_run_exits_0_even_when_jobs_fail(self, sqlite_url, capsys):
        _run(_seed())
        capsys.readouterr()

        # no RESEND_API_KEY: every delivery fails and is scheduled for retry
        assert entrypoint.main() == 0

        summary = _summary(capsys.readouterr().out)
        assert summary["success"] is True
        assert summary["processed"] == 1
        assert summary["sent"] == 0
        assert summary["failed"] == 0

        job = _run(_get_job("q1"))
        assert job.status == NotificationStatus.PENDING
        assert job.retry_count == 1
        assert job.error == "Email service not configured"

    def test_failed_job_is_attempted_again_next_run(self, sqlite_url, capsys):
        _run(_seed())
        assert entrypoint.main() == 0
        capsys.readouterr()

        assert entrypoint.main() == 0
        summary = _summary(capsys.readouterr().out)
        assert summary["processed"] == 1

    def test_run_uses_the_sql_store_pair(self, sqlite_url, monkeypatch, make_job, capsys):
        import database.store_factory as store_factory
        from database.store_memory import InMemoryNotificationStore, InMemoryRecipientDirectory

        store = InMemoryNotificationStore(horse_names={"h1": "Bold Ruler"})
        store.put(make_job("q1"))
        directory = InMemoryRecipientDirectory()
        backends = []

        def fake_create_store(backend="sql"):
            backends.append(backend)
            return store, directory

        monkeypatch.setattr(store_factory, "create_store", fake_create_store)

        assert entrypoint.main() == 0
        assert backends == ["sql"]
        assert _summary(capsys.readouterr().out)["processed"] == 1

        job = _run(store.get_job("q1"))
        assert job.status == NotificationStatus.PENDING
        assert job.retry_count == 1
