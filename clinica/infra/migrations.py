# clinica/infra/migrations.py
"""
Migrações de schema usando PRAGMA user_version.

V1: cadastros (pacientes, exames, medicamentos, setores, fornecedores),
    laboratório, lotes e movimentos de estoque
V2: tipos de movimento padrão (carga/descarga)
"""

from __future__ import annotations

from typing import List
from .db import connect


SCHEMA_V1: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS patient (
        code INTEGER PRIMARY KEY,
        name TEXT NOT NULL DEFAULT ''
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS exam (
        code TEXT PRIMARY KEY,
        description TEXT NOT NULL
    );
    """,
    # Resultados de laboratório
    """
    CREATE TABLE IF NOT EXISTS laboratory (
        code INTEGER PRIMARY KEY AUTOINCREMENT,
        created_date TEXT NOT NULL,
        lab_date TEXT NOT NULL,
        exam_code TEXT NOT NULL,
        patient_code INTEGER,
        patient_name TEXT,
        result TEXT,
        FOREIGN KEY (exam_code) REFERENCES exam(code),
        FOREIGN KEY (patient_code) REFERENCES patient(code)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS medical_type (
        code TEXT PRIMARY KEY,
        description TEXT NOT NULL,
        active INTEGER NOT NULL DEFAULT 1
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS medical (
        code INTEGER PRIMARY KEY AUTOINCREMENT,
        prod_code TEXT UNIQUE,
        description TEXT NOT NULL,
        type_code TEXT NOT NULL,
        FOREIGN KEY (type_code) REFERENCES medical_type(code)
    );
    """,
    # type: '+' carga, '-' descarga
    """
    CREATE TABLE IF NOT EXISTS movement_type (
        code TEXT PRIMARY KEY,
        description TEXT NOT NULL,
        type TEXT NOT NULL,
        category TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS ward (
        code TEXT PRIMARY KEY,
        description TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS supplier (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL
    );
    """,
    # custo gravado como texto para preservar o Decimal
    """
    CREATE TABLE IF NOT EXISTS lot (
        code TEXT PRIMARY KEY,
        medical_code INTEGER,
        preparation_date TEXT,
        due_date TEXT,
        cost TEXT,
        FOREIGN KEY (medical_code) REFERENCES medical(code)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS movement (
        code INTEGER PRIMARY KEY AUTOINCREMENT,
        ref_no TEXT,
        date TEXT NOT NULL,
        medical_code INTEGER NOT NULL,
        type_code TEXT NOT NULL,
        ward_code TEXT,
        quantity INTEGER NOT NULL CHECK (quantity >= 0),
        lot_code TEXT,
        supplier_id INTEGER,
        created_by TEXT,
        FOREIGN KEY (medical_code) REFERENCES medical(code),
        FOREIGN KEY (type_code) REFERENCES movement_type(code),
        FOREIGN KEY (ward_code) REFERENCES ward(code),
        FOREIGN KEY (lot_code) REFERENCES lot(code),
        FOREIGN KEY (supplier_id) REFERENCES supplier(id)
    );
    """,
]

DEFAULT_MOVEMENT_TYPES = [
    ("charge", "Carga", "+", "operational"),
    ("donation", "Doação", "+", "non-operational"),
    ("discharge", "Descarga", "-", "operational"),
    ("expired", "Vencimento", "-", "non-operational"),
    ("lost", "Perda", "-", "non-operational"),
]


def _apply_v1(conn) -> None:
    for sql in SCHEMA_V1:
        conn.executescript(sql)


def _apply_v2(conn) -> None:
    conn.executemany(
        """
        INSERT INTO movement_type (code, description, type, category)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(code) DO NOTHING
        """,
        DEFAULT_MOVEMENT_TYPES,
    )


def apply_migrations(db_path: str) -> None:
    """Aplica migrações incrementais de acordo com PRAGMA user_version."""
    with connect(db_path) as conn:
        ver = conn.execute("PRAGMA user_version;").fetchone()[0] or 0

        if ver < 1:
            _apply_v1(conn)
            conn.execute("PRAGMA user_version = 1;")
            ver = 1

        if ver < 2:
            _apply_v2(conn)
            conn.execute("PRAGMA user_version = 2;")
            ver = 2
