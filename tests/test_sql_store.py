import threading

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session

from dinghy.sql_store import (
    ExecutionRecord,
    Fileurl,
    FileurlChild,
    SQLClient,
    SQLConfig,
    SQLReadOnly,
)


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'dinghy.db'}")
    Fileurl.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def client(engine):
    return SQLClient(engine, on_failure=lambda: None)


def _link_count(engine):
    with Session(engine) as session:
        return session.scalar(select(func.count()).select_from(FileurlChild))


def test_roots_of_shared_module(client):
    client.set_deps("df1", ["mod1", "mod2"])
    client.set_deps("df2", ["mod2", "mod3"])
    assert client.get_roots("mod2") == ["df1", "df2"]
    assert client.get_roots("mod1") == ["df1"]


def test_roots_through_several_levels(client):
    client.set_deps("df1", ["mod1"])
    client.set_deps("mod1", ["mod3"])
    client.set_deps("mod3", ["mod4"])
    assert client.get_roots("mod4") == ["df1"]


def test_url_without_parents_is_its_own_root(client):
    client.set_deps("df1", ["mod1"])
    assert client.get_roots("df1") == ["df1"]


def test_unknown_url_has_no_roots(client):
    assert client.get_roots("missing") == []


def test_set_deps_is_idempotent(client, engine):
    client.set_deps("df1", ["mod1", "mod2"])
    first = _link_count(engine)
    client.set_deps("df1", ["mod1", "mod2"])
    client.set_deps("df1", ["mod1", "mod1"])
    assert _link_count(engine) == first
    assert first == 2


def test_set_deps_does_not_duplicate_urls(client, engine):
    client.set_deps("df1", ["mod1"])
    client.set_deps("df2", ["mod1"])
    with Session(engine) as session:
        urls = session.scalars(select(Fileurl.url).order_by(Fileurl.url)).all()
    assert urls == ["df1", "df2", "mod1"]


def test_raw_data_round_trip(client):
    client.set_deps("df1", [])
    client.set_raw_data("df1", '{"application": "app"}')
    assert client.get_raw_data("df1") == '{"application": "app"}'


def test_raw_data_for_unknown_url_is_empty(client):
    client.set_raw_data("missing", "body")
    assert client.get_raw_data("missing") == ""


def test_read_only_ignores_writes(client):
    client.set_deps("df1", ["mod1"])
    client.set_raw_data("df1", "body")
    ro = SQLReadOnly(client)
    ro.set_deps("df2", ["mod1"])
    ro.set_raw_data("df1", "changed")
    ro.clear()
    assert ro.get_roots("mod1") == ["df1"]
    assert ro.get_raw_data("df1") == "body"


def test_execution_record_round_trip(engine):
    with Session(engine) as session:
        session.add(
            ExecutionRecord(
                execution="migration", result="done", success="true", last_updated_date=1
            )
        )
        session.commit()
    with Session(engine) as session:
        row = session.get(ExecutionRecord, "migration")
        assert (row.result, row.success, row.last_updated_date) == ("done", "true", 1)
    assert ExecutionRecord.__tablename__ == "executions"


def test_dsn_describes_mysql_database():
    password = "password"
    config = SQLConfig(
        db_url="localhost:3307", user="user", password=password, db_name="dinghy"
    )
    url = make_url(config.dsn())
    assert url.drivername == "mysql+pymysql"
    assert (url.username, url.password) == ("user", "password")
    assert (url.host, url.port, url.database) == ("localhost", 3307, "dinghy")
    assert url.query["charset"] == "utf8mb4"


def test_dsn_without_port_uses_default():
    url = make_url(SQLConfig(db_url="localhost", db_name="dinghy").dsn())
    assert url.host == "localhost"
    assert url.port == 3306


def test_monitor_reports_unreachable_database(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'missing' / 'db.sqlite'}")
    failed = threading.Event()
    client = SQLClient(eng, on_failure=failed.set)
    client.start_monitor(0.001)
    try:
        assert failed.wait(5)
    finally:
        client.stop_monitor()
        eng.dispose()


def test_monitor_quiet_when_healthy(engine):
    failed = threading.Event()
    client = SQLClient(engine, on_failure=failed.set)
    client.start_monitor(0.001)
    reached = failed.wait(0.1)
    client.stop_monitor()
    assert reached is False