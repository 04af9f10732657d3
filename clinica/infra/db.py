# clinica/infra/db.py
"""
Utilidades de conexão SQLite e conversão de datas.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, time
from typing import Iterator, Optional

from clinica.domain.errors import ServiceError


@contextmanager
def connect(db_path: str) -> Iterator[sqlite3.Connection]:
    """
    Context manager para abrir conexão SQLite com:
    - foreign_keys ON
    - row_factory = sqlite3.Row
    - commit ao sair (rollback em caso de exceção)
    - erros do SQLite convertidos em ServiceError
    """
    try:
        conn = sqlite3.connect(db_path)
    except sqlite3.Error as e:
        raise ServiceError(str(e)) from e
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        yield conn
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise ServiceError(str(e)) from e
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def to_db_datetime(value: Optional[date]) -> Optional[str]:
    """Datas são gravadas como texto ISO ('YYYY-MM-DD HH:MM:SS')."""
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    return value.isoformat(sep=" ", timespec="seconds")


def from_db_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    return datetime.fromisoformat(str(value))


def to_db_date(value: Optional[date]) -> Optional[str]:
    """Limite de período comparado com date(coluna)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()
