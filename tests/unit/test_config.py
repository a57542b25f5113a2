"""
Unit tests for configuration loading and validation.
"""

import pytest

from snapdump.config import (
    DEFAULT_MAX_STATEMENT_BYTES,
    AppConfig,
    ConnectionConfig,
    DumpConfig,
    ObservabilityConfig,
    parse_table_list,
)
from snapdump.errors import DumpConfigError, DumpError


class TestDumpConfig:
    """Tests for DumpConfig."""

    def test_defaults(self):
        config = DumpConfig()

        assert config.ignore_tables == frozenset()
        assert config.max_statement_bytes == DEFAULT_MAX_STATEMENT_BYTES == 4194304
        assert config.lock_tables is False
        assert config.max_concurrent_tables == 4
        config.validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DUMP_IGNORE_TABLES", "audit, sessions,,")
        monkeypatch.setenv("DUMP_MAX_STATEMENT_BYTES", "1024")
        monkeypatch.setenv("DUMP_LOCK_TABLES", "TRUE")
        monkeypatch.setenv("DUMP_MAX_CONCURRENT_TABLES", "2")
        monkeypatch.setenv("DUMP_TIMEOUT_SECONDS", "30")

        config = DumpConfig.from_env()

        assert config.ignore_tables == {"audit", "sessions"}
        assert config.max_statement_bytes == 1024
        assert config.lock_tables is True
        assert config.max_concurrent_tables == 2
        assert config.timeout_seconds == 30.0

    def test_from_env_rejects_non_integer(self, monkeypatch):
        monkeypatch.setenv("DUMP_MAX_STATEMENT_BYTES", "lots")

        with pytest.raises(DumpConfigError) as exc_info:
            DumpConfig.from_env()
        assert exc_info.value.option == "DUMP_MAX_STATEMENT_BYTES"

    @pytest.mark.parametrize(
        "kwargs, option",
        [
            ({"max_statement_bytes": 0}, "max_statement_bytes"),
            ({"max_concurrent_tables": 0}, "max_concurrent_tables"),
            ({"fetch_size": 0}, "fetch_size"),
            ({"timeout_seconds": -1}, "timeout_seconds"),
        ],
    )
    def test_validate_rejects(self, kwargs, option):
        with pytest.raises(DumpConfigError) as exc_info:
            DumpConfig(**kwargs).validate()
        assert exc_info.value.option == option
        assert exc_info.value.code == "CONFIG_ERROR"

    def test_config_error_is_value_error(self):
        error = DumpConfigError("bad", option="x")
        assert isinstance(error, DumpError)
        assert isinstance(error, ValueError)


class TestConnectionConfig:
    """Tests for ConnectionConfig."""

    def test_tcp_kwargs(self):
        config = ConnectionConfig(host="db", port=3307, user="u", password="p", database="app")

        assert config.connect_kwargs() == {
            "user": "u",
            "password": "p",
            "database": "app",
            "host": "db",
            "port": 3307,
        }

    def test_socket_replaces_host(self):
        config = ConnectionConfig(database="app", unix_socket="/run/mysqld.sock")

        kwargs = config.connect_kwargs()
        assert kwargs["unix_socket"] == "/run/mysqld.sock"
        assert "host" not in kwargs
        assert "password" not in kwargs


class TestAppConfig:
    """Tests for AppConfig."""

    def test_database_required(self, monkeypatch):
        monkeypatch.delenv("MYSQL_DATABASE", raising=False)

        with pytest.raises(DumpConfigError, match="MYSQL_DATABASE is required"):
            AppConfig.from_env()

    def test_unvalidated_load(self, monkeypatch):
        monkeypatch.delenv("MYSQL_DATABASE", raising=False)

        config = AppConfig.from_env(validate=False)
        assert config.connection.database == ""

    def test_invalid_log_format(self):
        config = AppConfig(
            connection=ConnectionConfig(database="app"),
            observability=ObservabilityConfig(log_format="xml"),
        )

        with pytest.raises(DumpConfigError, match="Invalid LOG_FORMAT"):
            config.validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("MYSQL_DATABASE", "app")
        monkeypatch.setenv("DUMP_DIR", "/backups")
        monkeypatch.setenv("DUMP_ATOMIC", "false")
        monkeypatch.setenv("LOG_FORMAT", "json")

        config = AppConfig.from_env()

        assert config.connection.database == "app"
        assert config.output.directory == "/backups"
        assert config.output.atomic is False
        assert config.observability.log_format == "json"


def test_parse_table_list():
    assert parse_table_list(None) == frozenset()
    assert parse_table_list("a,b , c") == {"a", "b", "c"}
    assert parse_table_list(["a", " ", "b"]) == {"a", "b"}
