"""Dependency graph and raw dinghyfile storage kept in a SQL database."""

import logging
import signal
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import Engine, Integer, String, Text, create_engine, select, text, update
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

logger = logging.getLogger(__name__)

MAX_MONITOR_FAILURES = 5
DEFAULT_MYSQL_PORT = 3306


class _Base(DeclarativeBase):
    pass


class Fileurl(_Base):
    """A dinghyfile or module URL with its raw contents."""

    __tablename__ = "fileurls"

    id: Mapped[int] = mapped_column("id", Integer, primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column("url", String(1024), default="")
    rawdata: Mapped[Optional[str]] = mapped_column("rawdata", Text, nullable=True)


class FileurlChild(_Base):
    """A link from a parent URL to one of its dependencies."""

    __tablename__ = "fileurl_childs"

    fileurl_id: Mapped[int] = mapped_column("fileurl_id", Integer, primary_key=True)
    childfileurl_id: Mapped[int] = mapped_column(
        "childfileurl_id", Integer, primary_key=True
    )


class ExecutionRecord(_Base):
    """The outcome of a one-off execution such as a data migration."""

    __tablename__ = "executions"

    execution: Mapped[str] = mapped_column("execution", String(255), primary_key=True)
    result: Mapped[Optional[str]] = mapped_column("result", Text, nullable=True)
    success: Mapped[Optional[str]] = mapped_column("success", String(32), nullable=True)
    last_updated_date: Mapped[Optional[int]] = mapped_column(
        "lastupdateddate", Integer, nullable=True
    )


@dataclass
class SQLConfig:
    """Where and how to reach the MySQL database."""

    db_url: str = ""
    user: str = ""
    password: str = ""
    db_name: str = ""

    def dsn(self) -> str:
        """Return the SQLAlchemy connection string for this database."""
        host, sep, port = self.db_url.rpartition(":")
        if not (sep and port.isdigit()):
            host, port = self.db_url, str(DEFAULT_MYSQL_PORT)
        url = URL.create(
            "mysql+pymysql",
            username=self.user or None,
            password=self.password or None,
            host=host or None,
            port=int(port),
            database=self.db_name or None,
            query={"charset": "utf8mb4"},
        )
        return url.render_as_string(hide_password=False)


def _interrupt_process() -> None:
    signal.raise_signal(signal.SIGINT)


def _find_url(session: Session, url: str) -> Optional[Fileurl]:
    return session.scalars(select(Fileurl).where(Fileurl.url == url).limit(1)).first()


class SQLClient:
    """Stores the dependency graph in the fileurls and fileurl_childs tables."""

    def __init__(
        self, engine: Engine, on_failure: Optional[Callable[[], None]] = None
    ) -> None:
        self.engine = engine
        self._sessions = sessionmaker(engine, expire_on_commit=False)
        self._on_failure = on_failure or _interrupt_process
        self._monitor_stop: Optional[threading.Event] = None
        self._monitor_thread: Optional[threading.Thread] = None

    def _find_or_create(self, session: Session, url: str) -> Fileurl:
        row = _find_url(session, url)
        if row is None:
            row = Fileurl(url=url)
            session.add(row)
            session.flush()
        return row

    def set_deps(self, parent: str, deps: Iterable[str]) -> None:
        """Record ``deps`` as dependencies of ``parent``; existing links stay."""
        with self._sessions.begin() as session:
            parent_row = self._find_or_create(session, parent)
            linked = set(
                session.scalars(
                    select(FileurlChild.childfileurl_id).where(
                        FileurlChild.fileurl_id == parent_row.id
                    )
                )
            )
            for dep in deps:
                dep_row = self._find_or_create(session, dep)
                if dep_row.id not in linked:
                    session.add(
                        FileurlChild(fileurl_id=parent_row.id, childfileurl_id=dep_row.id)
                    )
                    linked.add(dep_row.id)

    def get_roots(self, url: str) -> list[str]:
        """Return the topmost URLs above ``url``; a URL with no parents is its own root."""
        results: list[str] = []
        with self._sessions() as session:
            start = _find_url(session, url)
            if start is None:
                return results
            frontier = [start.id]
            while frontier:
                upper: list[int] = []
                for file_id in frontier:
                    parents = session.scalars(
                        select(FileurlChild.fileurl_id)
                        .where(FileurlChild.childfileurl_id == file_id)
                        .order_by(FileurlChild.fileurl_id)
                    ).all()
                    if parents:
                        upper.extend(parents)
                    else:
                        found = session.scalar(
                            select(Fileurl.url).where(Fileurl.id == file_id)
                        )
                        results.append(found or "")
                frontier = upper
        return results

    def set_raw_data(self, url: str, raw_data: str) -> None:
        """Store the raw contents of ``url``; unknown URLs are left alone."""
        with self._sessions.begin() as session:
            session.execute(
                update(Fileurl).where(Fileurl.url == url).values(rawdata=raw_data)
            )

    def get_raw_data(self, url: str) -> str:
        """Return the raw contents of ``url``, or an empty string."""
        with self._sessions() as session:
            row = _find_url(session, url)
            return (row.rawdata or "") if row is not None else ""

    def start_monitor(self, interval: float = 10.0) -> None:
        """Check the database every ``interval`` seconds; give up after five failures."""
        if self._monitor_thread is not None and self._monitor_thread.is_alive():
            return
        self._monitor_stop = threading.Event()
        self._monitor_thread = threading.Thread(
            target=self._monitor, args=(interval, self._monitor_stop), daemon=True
        )
        self._monitor_thread.start()

    def stop_monitor(self) -> None:
        """Stop the health monitor if it is running."""
        if self._monitor_stop is not None:
            self._monitor_stop.set()
        if self._monitor_thread is not None:
            self._monitor_thread.join()
        self._monitor_thread = None
        self._monitor_stop = None

    def _ping(self) -> None:
        with self.engine.connect() as connection:
            connection.execute(text("SELECT 1"))

    def _monitor(self, interval: float, stop: threading.Event) -> None:
        failures = 0
        while not stop.wait(interval):
            try:
                self._ping()
            except SQLAlchemyError:
                failures += 1
                logger.error(
                    "SQL monitor failed %d times (%d max)", failures, MAX_MONITOR_FAILURES
                )
                if failures >= MAX_MONITOR_FAILURES:
                    logger.error(
                        "Stopping dinghy because communication with MySQL database failed"
                    )
                    self._on_failure()
                    return
                continue
            failures = 0


def new_mysql_client(config: SQLConfig) -> SQLClient:
    """Connect to MySQL, verify the connection and start the health monitor."""
    engine = create_engine(config.dsn(), pool_pre_ping=True)
    with engine.connect():
        pass
    client = SQLClient(engine)
    client.start_monitor()
    return client


class SQLReadOnly:
    """Reads the SQL dependency graph; writes are counted and not applied."""

    def __init__(self, client: SQLClient) -> None:
        self.client = client
        self.ignored_writes = 0

    def _ignore(self, operation: str, target: str) -> None:
        self.ignored_writes += 1
        logger.debug("read-only mode: %s for %r not applied", operation, target)

    def set_deps(self, parent: str, deps: Iterable[str]) -> None:
        """Leave the graph untouched; the write is only counted."""
        self._ignore("set_deps", parent)

    def get_roots(self, url: str) -> list[str]:
        """Return the topmost URLs above ``url``."""
        return self.client.get_roots(url)

    def set_raw_data(self, url: str, raw_data: str) -> None:
        """Leave the stored contents untouched; the write is only counted."""
        self._ignore("set_raw_data", url)

    def get_raw_data(self, url: str) -> str:
        """Return the raw contents of ``url``, or an empty string."""
        return self.client.get_raw_data(url)

    def clear(self) -> None:
        """Leave the graph untouched; the request is only counted."""
        self._ignore("clear", "*")