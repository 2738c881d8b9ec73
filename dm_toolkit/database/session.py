"""Campaign store: an explicitly owned database handle with transaction scopes."""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Generator, Generic, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ..config import DatabaseConfig
from .models import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")


def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key support for SQLite."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class TransactionStatus(Enum):
    """How a transaction ended."""

    COMMITTED = "committed"
    ABORTED = "aborted"


@dataclass
class TransactionOutcome(Generic[T]):
    """Committed value, or the error that rolled the transaction back."""

    status: TransactionStatus
    value: T | None = None
    error: Exception | None = None

    @property
    def committed(self) -> bool:
        return self.status is TransactionStatus.COMMITTED

    def unwrap(self) -> T:
        """Return the committed value or re-raise the abort cause."""
        if self.error is not None:
            raise self.error
        return self.value


class CampaignStore:
    """Owns the engine and session factory for one campaign database.

    Components receive a store at construction; there is no module-level
    engine.
    """

    def __init__(
        self,
        db_path: Path | str | None = None,
        busy_timeout: float = 5.0,
        echo: bool = False,
    ):
        """Open (and create if needed) the database.

        Args:
            db_path: Path to the SQLite database file. Defaults to saves/campaign.db
            busy_timeout: Seconds to wait for a locked database
            echo: Log emitted SQL
        """
        if db_path is None:
            db_path = Path("saves/campaign.db")
        else:
            db_path = Path(db_path)

        # Ensure the directory exists
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path

        self._engine: Engine | None = create_engine(
            f"sqlite:///{db_path}",
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": busy_timeout},
        )
        event.listen(self._engine, "connect", set_sqlite_pragma)

        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        logger.info(f"Campaign store opened at {db_path}")

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "CampaignStore":
        return cls(config.path, busy_timeout=config.busy_timeout, echo=config.echo)

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Campaign store is closed")
        return self._engine

    def session(self) -> Session:
        """Get a new database session.

        Returns:
            SQLAlchemy Session instance
        """
        if self._engine is None:
            raise RuntimeError("Campaign store is closed")
        return self._session_factory()

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations.

        Usage:
            with store.transaction() as session:
                session.add(some_object)

        Commits on exit; rolls back and re-raises on any exception.

        Yields:
            SQLAlchemy Session instance
        """
        session = self.session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def run(self, work: Callable[[Session], T]) -> TransactionOutcome[T]:
        """Run ``work`` inside one transaction and report how it ended.

        Args:
            work: Callable receiving the transaction's session

        Returns:
            TransactionOutcome holding the value or the abort cause
        """
        try:
            with self.transaction() as session:
                value = work(session)
        except Exception as e:
            logger.debug(f"Transaction aborted: {e}")
            return TransactionOutcome(TransactionStatus.ABORTED, error=e)
        return TransactionOutcome(TransactionStatus.COMMITTED, value=value)

    def reset(self) -> None:
        """Drop all tables and recreate them.

        WARNING: This will delete all data!
        """
        Base.metadata.drop_all(self.engine)
        Base.metadata.create_all(self.engine)

    def close(self) -> None:
        """Dispose of the engine."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
