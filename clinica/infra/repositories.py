# clinica/infra/repositories.py
"""
Repositórios (DAO) para acesso e manipulação de dados no SQLite.

Classes:
- PatientRepo
- ExamRepo
- LabRepo
- MedicalTypeRepo
- MedicalRepo
- MovementTypeRepo
- WardRepo
- SupplierRepo
- LotRepo
- MovementRepo

As consultas de leitura usam as views de ``views.py`` e devolvem os
dataclasses de ``clinica.domain.models``.
"""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .db import connect, from_db_datetime, to_db_date, to_db_datetime
from clinica.domain.filters import MovementQuery
from clinica.domain.models import (
    Exam, LabRecord, Lot, Medical, MedicalType, Movement, MovementType,
    Patient, Ward,
)


# -------------------------
# Helpers
# -------------------------

def _as_dict(row: Any) -> Dict[str, Any]:
    if isinstance(row, dict):
        return row
    if is_dataclass(row):
        return asdict(row)
    raise TypeError("row must be dict or dataclass")


def _between(column: str, start, end, where: List[str], params: List[Any]) -> None:
    """Adiciona ``date(coluna) BETWEEN ? AND ?`` quando o período está completo."""
    if start is None or end is None:
        return
    where.append(f"date({column}) BETWEEN ? AND ?")
    params.extend([to_db_date(start), to_db_date(end)])


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return Decimal(str(value))


def _row_to_lab(r) -> LabRecord:
    return LabRecord(
        code=r["code"],
        created_date=from_db_datetime(r["created_date"]),
        lab_date=from_db_datetime(r["lab_date"]),
        exam=r["exam"],
        patient_name=r["patient_name"] or "",
        patient_code=r["patient_code"],
        result=r["result"] or "",
    )


def _row_to_movement(r) -> Movement:
    medical_type = MedicalType(r["medical_type_code"], r["medical_type_description"])
    ward = None
    if r["ward_code"] is not None:
        ward = Ward(r["ward_code"], r["ward_description"])
    return Movement(
        code=r["code"],
        ref_no=r["ref_no"] or "",
        date=from_db_datetime(r["date"]),
        medical=Medical(
            code=r["medical_code"],
            prod_code=r["medical_prod_code"] or "",
            description=r["medical_description"],
            type=medical_type,
        ),
        type=MovementType(
            code=r["type_code"],
            description=r["type_description"],
            type=r["type_sign"],
            category=r["type_category"] or "",
        ),
        quantity=r["quantity"],
        lot=Lot(
            code=r["lot_code"] or "",
            preparation_date=from_db_datetime(r["lot_preparation_date"]),
            due_date=from_db_datetime(r["lot_due_date"]),
            cost=_to_decimal(r["lot_cost"]),
        ),
        ward=ward,
        origin=r["origin"],
        created_by=r["created_by"],
    )


# -------------------------
# Pacientes e exames
# -------------------------

class PatientRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def upsert(self, rows: Iterable[Any]) -> None:
        rows = [_as_dict(r) for r in rows]
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO patient (code, name) VALUES (:code, :name)
                ON CONFLICT(code) DO UPDATE SET name=excluded.name
                """,
                rows,
            )

    def get_by_id(self, code: int) -> Optional[Patient]:
        with connect(self.db_path) as c:
            row = c.execute("SELECT code, name FROM patient WHERE code = ?", (code,)).fetchone()
            return Patient(row["code"], row["name"]) if row else None


class ExamRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def upsert(self, rows: Iterable[Any]) -> None:
        rows = [_as_dict(r) for r in rows]
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO exam (code, description) VALUES (:code, :description)
                ON CONFLICT(code) DO UPDATE SET description=excluded.description
                """,
                rows,
            )

    def get_all(self) -> List[Exam]:
        with connect(self.db_path) as c:
            cur = c.execute("SELECT code, description FROM exam ORDER BY description")
            return [Exam(r["code"], r["description"]) for r in cur.fetchall()]


# -------------------------
# Laboratório
# -------------------------

class LabRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def _select(self, where: List[str], params: List[Any]) -> List[LabRecord]:
        sql = "SELECT * FROM vw_lab_detalhe"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY lab_date DESC, code DESC"
        with connect(self.db_path) as c:
            return [_row_to_lab(r) for r in c.execute(sql, params).fetchall()]

    def get_all(self) -> List[LabRecord]:
        return self._select([], [])

    def get_by_patient(self, patient: Patient) -> List[LabRecord]:
        return self._select(["patient_code = ?"], [patient.code])

    def get_by_criteria(
        self,
        exam: Optional[str],
        date_from,
        date_to,
        patient: Optional[Patient] = None,
    ) -> List[LabRecord]:
        """Filtra por nome de exame (None = todos), período e paciente."""
        where: List[str] = []
        params: List[Any] = []
        if exam is not None:
            where.append("exam = ?")
            params.append(exam)
        _between("lab_date", date_from, date_to, where, params)
        if patient is not None:
            where.append("patient_code = ?")
            params.append(patient.code)
        return self._select(where, params)

    def delete(self, record: LabRecord) -> int:
        with connect(self.db_path) as c:
            cur = c.execute("DELETE FROM laboratory WHERE code = ?", (record.code,))
            return cur.rowcount

    def insert_many(self, rows: Iterable[Any]) -> int:
        """Insere resultados; datas aceitam ``date``/``datetime`` ou texto ISO."""
        rows = [_as_dict(r) for r in rows]
        for r in rows:
            for key in ("created_date", "lab_date"):
                if not isinstance(r.get(key), str):
                    r[key] = to_db_datetime(r.get(key))
            r.setdefault("patient_code", None)
            r.setdefault("patient_name", None)
            r.setdefault("result", None)
        if not rows:
            return 0
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO laboratory
                    (created_date, lab_date, exam_code, patient_code, patient_name, result)
                VALUES
                    (:created_date, :lab_date, :exam_code, :patient_code, :patient_name, :result)
                """,
                rows,
            )
        return len(rows)


# -------------------------
# Cadastros do estoque
# -------------------------

class MedicalTypeRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def upsert(self, rows: Iterable[Any]) -> None:
        rows = [_as_dict(r) for r in rows]
        for r in rows:
            r.setdefault("active", 1)
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO medical_type (code, description, active)
                VALUES (:code, :description, :active)
                ON CONFLICT(code) DO UPDATE SET
                    description=excluded.description,
                    active=excluded.active
                """,
                rows,
            )

    def get_active(self) -> List[MedicalType]:
        with connect(self.db_path) as c:
            cur = c.execute(
                "SELECT code, description FROM medical_type WHERE active = 1 ORDER BY description"
            )
            return [MedicalType(r["code"], r["description"]) for r in cur.fetchall()]


class MedicalRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def upsert(self, rows: Iterable[Any]) -> None:
        """Upsert pelo código de produto (``prod_code``)."""
        rows = [_as_dict(r) for r in rows]
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO medical (prod_code, description, type_code)
                VALUES (:prod_code, :description, :type_code)
                ON CONFLICT(prod_code) DO UPDATE SET
                    description=excluded.description,
                    type_code=excluded.type_code
                """,
                rows,
            )

    def get_code(self, prod_code: str) -> Optional[int]:
        with connect(self.db_path) as c:
            row = c.execute("SELECT code FROM medical WHERE prod_code = ?", (prod_code,)).fetchone()
            return row[0] if row else None

    def get_sorted_by_name(self) -> List[Medical]:
        with connect(self.db_path) as c:
            cur = c.execute(
                """
                SELECT m.code, m.prod_code, m.description,
                       t.code AS type_code, t.description AS type_description
                FROM medical m
                JOIN medical_type t ON t.code = m.type_code
                ORDER BY m.description COLLATE NOCASE
                """
            )
            return [
                Medical(
                    code=r["code"],
                    prod_code=r["prod_code"] or "",
                    description=r["description"],
                    type=MedicalType(r["type_code"], r["type_description"]),
                )
                for r in cur.fetchall()
            ]


class MovementTypeRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def upsert(self, rows: Iterable[Any]) -> None:
        rows = [_as_dict(r) for r in rows]
        for r in rows:
            r.setdefault("category", None)
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO movement_type (code, description, type, category)
                VALUES (:code, :description, :type, :category)
                ON CONFLICT(code) DO UPDATE SET
                    description=excluded.description,
                    type=excluded.type,
                    category=excluded.category
                """,
                rows,
            )

    def get_all(self) -> List[MovementType]:
        with connect(self.db_path) as c:
            cur = c.execute(
                "SELECT code, description, type, category FROM movement_type ORDER BY description"
            )
            return [
                MovementType(r["code"], r["description"], r["type"], r["category"] or "")
                for r in cur.fetchall()
            ]


class WardRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def upsert(self, rows: Iterable[Any]) -> None:
        rows = [_as_dict(r) for r in rows]
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO ward (code, description) VALUES (:code, :description)
                ON CONFLICT(code) DO UPDATE SET description=excluded.description
                """,
                rows,
            )

    def get_sorted(self) -> List[Ward]:
        with connect(self.db_path) as c:
            cur = c.execute("SELECT code, description FROM ward ORDER BY description COLLATE NOCASE")
            return [Ward(r["code"], r["description"]) for r in cur.fetchall()]


class SupplierRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def get_or_create(self, name: str) -> int:
        with connect(self.db_path) as c:
            row = c.execute("SELECT id FROM supplier WHERE name = ?", (name,)).fetchone()
            if row:
                return row[0]
            cur = c.execute("INSERT INTO supplier (name) VALUES (?)", (name,))
            return cur.lastrowid

    def get_map(self) -> Dict[int, str]:
        with connect(self.db_path) as c:
            return {r["id"]: r["name"] for r in c.execute("SELECT id, name FROM supplier").fetchall()}


class LotRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def upsert(self, rows: Iterable[Any]) -> None:
        rows = [_as_dict(r) for r in rows]
        for r in rows:
            for key in ("preparation_date", "due_date"):
                if r.get(key) is not None and not isinstance(r[key], str):
                    r[key] = to_db_datetime(r[key])
                r.setdefault(key, None)
            cost = r.get("cost")
            r["cost"] = None if cost is None else str(cost)
            r.setdefault("medical_code", None)
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO lot (code, medical_code, preparation_date, due_date, cost)
                VALUES (:code, :medical_code, :preparation_date, :due_date, :cost)
                ON CONFLICT(code) DO UPDATE SET
                    preparation_date=COALESCE(excluded.preparation_date, lot.preparation_date),
                    due_date=COALESCE(excluded.due_date, lot.due_date),
                    cost=COALESCE(excluded.cost, lot.cost)
                """,
                rows,
            )


# -------------------------
# Movimentos
# -------------------------

class MovementRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    @staticmethod
    def _where(query: MovementQuery) -> Tuple[List[str], List[Any]]:
        where: List[str] = []
        params: List[Any] = []
        if query.medical_code is not None:
            where.append("medical_code = ?")
            params.append(query.medical_code)
        if query.medical_type is not None:
            where.append("medical_type_code = ?")
            params.append(query.medical_type)
        if query.ward is not None:
            where.append("ward_code = ?")
            params.append(query.ward)
        if query.movement_type in ("+", "-"):
            where.append("instr(type_sign, ?) > 0")
            params.append(query.movement_type)
        elif query.movement_type is not None:
            where.append("type_code = ?")
            params.append(query.movement_type)
        _between("date", query.mov_from, query.mov_to, where, params)
        _between("lot_preparation_date", query.lot_prep_from, query.lot_prep_to, where, params)
        _between("lot_due_date", query.lot_due_from, query.lot_due_to, where, params)
        return where, params

    def get_movements(self, query: MovementQuery) -> List[Movement]:
        """Movimentos filtrados, do mais recente para o mais antigo."""
        where, params = self._where(query)
        sql = "SELECT * FROM vw_movimento_detalhe"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY date DESC, code DESC"
        with connect(self.db_path) as c:
            return [_row_to_movement(r) for r in c.execute(sql, params).fetchall()]

    def get_last_movement(self) -> Optional[Movement]:
        """Último movimento inserido no sistema (maior código)."""
        with connect(self.db_path) as c:
            row = c.execute(
                "SELECT * FROM vw_movimento_detalhe ORDER BY code DESC LIMIT 1"
            ).fetchone()
            return _row_to_movement(row) if row else None

    def delete_last_movement(self, movement: Movement) -> int:
        """Remove o movimento e o lote, se nenhum outro movimento o usar."""
        with connect(self.db_path) as c:
            cur = c.execute("DELETE FROM movement WHERE code = ?", (movement.code,))
            deleted = cur.rowcount
            lot_code = movement.lot.code if movement.lot is not None else None
            if deleted and lot_code:
                c.execute(
                    """
                    DELETE FROM lot
                    WHERE code = ?
                      AND NOT EXISTS (SELECT 1 FROM movement WHERE lot_code = ?)
                    """,
                    (lot_code, lot_code),
                )
            return deleted

    def insert_many(self, rows: Iterable[Any]) -> int:
        rows = [_as_dict(r) for r in rows]
        for r in rows:
            if not isinstance(r.get("date"), str):
                r["date"] = to_db_datetime(r.get("date"))
            for key in ("ref_no", "ward_code", "lot_code", "supplier_id", "created_by"):
                r.setdefault(key, None)
        if not rows:
            return 0
        with connect(self.db_path) as c:
            c.executemany(
                """
                INSERT INTO movement
                    (ref_no, date, medical_code, type_code, ward_code, quantity,
                     lot_code, supplier_id, created_by)
                VALUES
                    (:ref_no, :date, :medical_code, :type_code, :ward_code, :quantity,
                     :lot_code, :supplier_id, :created_by)
                """,
                rows,
            )
        return len(rows)
