"""Unit tests for config.py"""

from notecollab.config import Settings, get_settings


def test_defaults():
    s = Settings(_env_file=None)
    assert s.app_name == "NoteCollab API"
    assert s.algorithm == "HS256"
    assert s.invitation_ttl_days == 7
    assert s.editors_can_invite is True
    assert s.collaborator_write_retries == 3
    assert s.presence_idle_seconds == 300
    assert s.realtime_events_per_second == 10


def test_env_override(monkeypatch):
    monkeypatch.setenv("PUBLIC_ORIGIN", "https://notes.example.org")
    monkeypatch.setenv("INVITATION_TTL_DAYS", "3")
    monkeypatch.setenv("EDITORS_CAN_INVITE", "false")
    monkeypatch.setenv("CORS_ORIGINS", '["https://a.example.org","https://b.example.org"]')

    s = Settings(_env_file=None)
    assert s.public_origin == "https://notes.example.org"
    assert s.invitation_ttl_days == 3
    assert s.editors_can_invite is False
    assert s.cors_origins == ["https://a.example.org", "https://b.example.org"]


def test_get_settings_returns_shared_instance():
    assert get_settings() is get_settings()


def test_engine_options_size_server_pools(monkeypatch):
    from notecollab.database import engine_options

    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://notes:secret@db:5432/notes")
    monkeypatch.setenv("DATABASE_POOL_SIZE", "20")
    monkeypatch.setenv("DATABASE_MAX_OVERFLOW", "0")
    s = Settings(_env_file=None)

    options = engine_options(s)
    assert options["pool_pre_ping"] is True
    assert options["pool_size"] == 20
    assert options["max_overflow"] == 0
    assert options["pool_timeout"] == 30


def test_engine_options_leave_sqlite_pooling_alone():
    from notecollab.database import engine_options

    s = Settings(_env_file=None, database_url="sqlite+aiosqlite:///:memory:", database_echo=True)

    assert engine_options(s) == {"echo": True, "pool_pre_ping": True}
