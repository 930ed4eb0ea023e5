import pytest

from changetrack.core.config import CONFIG_PATH_ENV, Settings


def test_defaults():
    s = Settings.from_env({})
    assert s.database_url == "sqlite:///./changetrack.db"
    assert s.transition_attempts == 3
    assert s.recent_limit == 5
    assert s.audit_dir is None
    assert s.cors_origins == ["*"]


def test_environment_overrides_and_coercion():
    s = Settings.from_env({
        "DATABASE_URL": "postgresql://app:s3cret@db:5432/changes",
        "SQL_ECHO": "true",
        "TRANSITION_ATTEMPTS": "5",
        "CORS_ORIGINS": "http://localhost:3000, https://board.example.com",
        "AUDIT_DIR": "",
    })
    assert s.sql_echo is True
    assert s.transition_attempts == 5
    assert s.cors_origins == ["http://localhost:3000", "https://board.example.com"]
    assert s.audit_dir is None
    assert s.masked_database_url() == "postgresql://app:***@db:5432/changes"


def test_yaml_file_is_overlaid_by_environment(tmp_path):
    cfg = tmp_path / "changetrack.yaml"
    cfg.write_text(
        "database_url: sqlite:///from-file.db\n"
        "recent_limit: 8\n"
        "cors_origins: [http://a, http://b]\n"
        "unknown_key: ignored\n",
        encoding="utf-8",
    )
    s = Settings.from_env({CONFIG_PATH_ENV: str(cfg), "RECENT_LIMIT": "2"})
    assert s.database_url == "sqlite:///from-file.db"
    assert s.recent_limit == 2
    assert s.cors_origins == ["http://a", "http://b"]


def test_missing_or_malformed_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Settings.from_env({CONFIG_PATH_ENV: str(tmp_path / "nope.yaml")})

    bad = tmp_path / "list.yaml"
    bad.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        Settings.from_env({CONFIG_PATH_ENV: str(bad)})


def test_sqlite_url_is_not_masked():
    assert Settings(database_url="sqlite:///./x.db").masked_database_url() == "sqlite:///./x.db"
