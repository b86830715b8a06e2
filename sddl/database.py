"""
SQLite-backed preference storage.

Uses SQLAlchemy so the resolver state can live next to an application's
existing database. Values are stored JSON-encoded to keep their types.
"""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Mapping

from sqlalchemy import create_engine, Column, String, Text, DateTime
from sqlalchemy.orm import declarative_base, sessionmaker

from .storage import KeyValueStore, PREFS_NAMESPACE

Base = declarative_base()


class Preference(Base):
    """One persisted key in a namespace."""

    __tablename__ = "preferences"

    namespace = Column(String, primary_key=True)
    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)  # JSON-encoded
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


def init_database(db_path: Path):
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy engine bound to the file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    return engine


class SqlStore(KeyValueStore):
    """KeyValueStore over the preferences table."""

    def __init__(self, db_path: Path, namespace: str = PREFS_NAMESPACE):
        self.db_path = Path(db_path)
        self.namespace = namespace
        self._engine = init_database(self.db_path)
        self._Session = sessionmaker(bind=self._engine)
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock, self._Session() as session:
            row = session.get(Preference, (self.namespace, key))
            if row is None:
                return default
            return json.loads(row.value)

    def update(self, values: Mapping[str, Any]) -> None:
        with self._lock, self._Session() as session:
            for key, value in values.items():
                session.merge(Preference(
                    namespace=self.namespace,
                    key=key,
                    value=json.dumps(value),
                    updated_at=datetime.now(),
                ))
            session.commit()

    def snapshot(self) -> Dict[str, Any]:
        with self._lock, self._Session() as session:
            rows = session.query(Preference).filter(Preference.namespace == self.namespace).all()
            return {row.key: json.loads(row.value) for row in rows}

    def close(self) -> None:
        self._engine.dispose()
