# clinica/usecases/importar.py
"""
UC: Importar planilhas XLSX de LABORATÓRIO e MOVIMENTOS.
- run_import_labs(path):       lê o XLSX com o adapter e insere os resultados.
- run_import_movements(path):  lê o XLSX com o adapter e insere os movimentos.

Obs.:
- Pacientes, exames, medicamentos, setores e fornecedores ausentes são
  criados automaticamente com os dados da própria linha.
- Linhas sem data, sem produto, com quantidade inválida ou tipo de
  movimento desconhecido são ignoradas e contadas em `linhas_ignoradas`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from clinica.config import DB_PATH
from clinica.adapters.parsers import parse_cost, parse_quantity
from clinica.adapters.xlsx_loader import load_labs_from_xlsx, load_movements_from_xlsx
from clinica.infra.db import connect
from clinica.infra.repositories import (
    ExamRepo, LabRepo, LotRepo, MedicalRepo, MedicalTypeRepo, MovementRepo,
    MovementTypeRepo, PatientRepo, SupplierRepo, WardRepo,
)
from clinica.infra.logger import (
    log_database_operation, log_file_operation, log_system_event,
    log_transaction, print_system,
)

AUTO_TYPE = "AUTO"

_CHARGE_WORDS = {"+", "carga", "entrada", "charge"}
_DISCHARGE_WORDS = {"-", "descarga", "saida", "saída", "discharge"}


def _to_int(val: Any) -> Optional[int]:
    if val is None:
        return None
    try:
        return int(float(str(val).strip()))
    except ValueError:
        return None


def _exists(db_path: str, table: str, column: str, value: Any) -> bool:
    with connect(db_path) as c:
        return c.execute(f"SELECT 1 FROM {table} WHERE {column} = ?", (value,)).fetchone() is not None


def _ensure_exam_exists(code: str, description: str, db_path: str) -> None:
    if _exists(db_path, "exam", "code", code):
        return
    log_system_event("creating_auto_exam", {"code": code})
    ExamRepo(db_path).upsert([{"code": code, "description": description or code}])
    log_database_operation("exam", "UPSERT", 1, code=code)


def _ensure_patient_exists(code: int, name: Optional[str], db_path: str) -> None:
    if _exists(db_path, "patient", "code", code):
        return
    log_system_event("creating_auto_patient", {"code": code})
    PatientRepo(db_path).upsert([{"code": code, "name": name or f"Paciente {code}"}])
    log_database_operation("patient", "UPSERT", 1, code=code)


def _ensure_medical_exists(row: Dict[str, Any], db_path: str) -> int:
    """Garante o medicamento (e seu tipo) e devolve o código interno."""
    medicals = MedicalRepo(db_path)
    prod_code = row["prod_code"]
    code = medicals.get_code(prod_code)
    if code is not None:
        return code

    type_code = row.get("medical_type") or AUTO_TYPE
    if not _exists(db_path, "medical_type", "code", type_code):
        MedicalTypeRepo(db_path).upsert([{"code": type_code, "description": type_code}])
        log_database_operation("medical_type", "UPSERT", 1, code=type_code)

    log_system_event("creating_auto_medical", {"prod_code": prod_code, "data": row})
    medicals.upsert([{
        "prod_code": prod_code,
        "description": row.get("medical") or f"Auto-created: {prod_code}",
        "type_code": type_code,
    }])
    log_database_operation("medical", "UPSERT", 1, prod_code=prod_code)
    return medicals.get_code(prod_code)


def _movement_type_code(raw: Optional[str], known: Dict[str, Any]) -> Optional[str]:
    if raw is None:
        return None
    s = raw.strip()
    if s in known:
        return s
    low = s.lower()
    for code, mt in known.items():
        if mt.description.lower() == low:
            return code
    if low in _CHARGE_WORDS:
        return "charge"
    if low in _DISCHARGE_WORDS:
        return "discharge"
    return None


# -------------------------
# Laboratório
# -------------------------

def import_lab_rows(rows: List[Dict[str, Any]], db_path: str = DB_PATH) -> Dict[str, Any]:
    """Insere linhas já normalizadas pelo loader."""
    now = datetime.now().replace(microsecond=0)
    to_insert: List[Dict[str, Any]] = []
    skipped = 0
    for row in rows:
        exam = row.get("exam") or row.get("exam_code")
        if not row.get("lab_date") or not exam:
            skipped += 1
            continue
        exam_code = row.get("exam_code") or exam
        _ensure_exam_exists(exam_code, row.get("exam") or exam_code, db_path)

        patient_code = _to_int(row.get("patient_code"))
        if patient_code is not None:
            _ensure_patient_exists(patient_code, row.get("patient_name"), db_path)

        to_insert.append({
            "created_date": now,
            "lab_date": datetime.fromisoformat(row["lab_date"]),
            "exam_code": exam_code,
            "patient_code": patient_code,
            "patient_name": row.get("patient_name"),
            "result": row.get("result"),
        })

    inserted = LabRepo(db_path).insert_many(to_insert)
    log_database_operation("laboratory", "INSERT_MANY", inserted)
    return {"linhas_inseridas": inserted, "linhas_ignoradas": skipped}


def run_import_labs(path: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Lê um XLSX de resultados e insere todas as linhas válidas."""
    log_system_event("import_labs_start", {"file_path": path})
    try:
        rows = load_labs_from_xlsx(path)
        log_file_operation("import", path, rows_processed=len(rows))
        result = {"arquivo": path, **import_lab_rows(rows, db_path)}
        print_system(f">> {result['linhas_inseridas']} resultado(s) importado(s).")
        log_transaction("import_labs", {"file": path, "rows_count": len(rows)}, result=result)
        return result
    except Exception as e:
        log_transaction("import_labs", {"file": path}, error=str(e))
        log_system_event("import_labs_error", {"file_path": path, "error": str(e)}, level="error")
        raise


# -------------------------
# Movimentos
# -------------------------

def import_movement_rows(rows: List[Dict[str, Any]], db_path: str = DB_PATH) -> Dict[str, Any]:
    """Insere movimentos já normalizados pelo loader, na ordem da planilha."""
    known = {mt.code: mt for mt in MovementTypeRepo(db_path).get_all()}
    suppliers = SupplierRepo(db_path)
    to_insert: List[Dict[str, Any]] = []
    skipped = 0
    for row in rows:
        quantity = parse_quantity(row.get("quantity_raw"))
        type_code = _movement_type_code(row.get("movement_type"), known)
        if not row.get("date") or not row.get("prod_code") or type_code is None \
                or quantity is None or quantity < 0:
            skipped += 1
            continue

        medical_code = _ensure_medical_exists(row, db_path)

        ward_code = row.get("ward")
        if ward_code and known[type_code].is_discharge:
            if not _exists(db_path, "ward", "code", ward_code):
                WardRepo(db_path).upsert([{"code": ward_code, "description": ward_code}])
                log_database_operation("ward", "UPSERT", 1, code=ward_code)
        else:
            ward_code = None

        lot_code = row.get("lot")
        if lot_code:
            LotRepo(db_path).upsert([{
                "code": lot_code,
                "medical_code": medical_code,
                "preparation_date": row.get("preparation_date"),
                "due_date": row.get("due_date"),
                "cost": parse_cost(row.get("cost")),
            }])

        supplier_id = None
        if row.get("supplier") and known[type_code].is_charge:
            supplier_id = suppliers.get_or_create(row["supplier"])

        to_insert.append({
            "ref_no": row.get("ref_no"),
            "date": datetime.fromisoformat(row["date"]),
            "medical_code": medical_code,
            "type_code": type_code,
            "ward_code": ward_code,
            "quantity": quantity,
            "lot_code": lot_code,
            "supplier_id": supplier_id,
            "created_by": row.get("created_by"),
        })

    inserted = MovementRepo(db_path).insert_many(to_insert)
    log_database_operation("movement", "INSERT_MANY", inserted)
    return {"linhas_inseridas": inserted, "linhas_ignoradas": skipped}


def run_import_movements(path: str, db_path: str = DB_PATH) -> Dict[str, Any]:
    """Lê um XLSX de movimentos e insere todas as linhas válidas."""
    log_system_event("import_movements_start", {"file_path": path})
    try:
        rows = load_movements_from_xlsx(path)
        log_file_operation("import", path, rows_processed=len(rows))
        result = {"arquivo": path, **import_movement_rows(rows, db_path)}
        print_system(f">> {result['linhas_inseridas']} movimento(s) importado(s).")
        log_transaction("import_movements", {"file": path, "rows_count": len(rows)}, result=result)
        return result
    except Exception as e:
        log_transaction("import_movements", {"file": path}, error=str(e))
        log_system_event("import_movements_error", {"file_path": path, "error": str(e)}, level="error")
        raise
