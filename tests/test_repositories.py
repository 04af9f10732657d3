from datetime import date, datetime
from decimal import Decimal

import pytest

from clinica.domain.errors import ServiceError
from clinica.domain.filters import MovementQuery
from clinica.domain.models import Patient
from clinica.infra.db import connect
from clinica.infra.migrations import apply_migrations
from clinica.infra.views import create_views
from clinica.infra.repositories import (
    ExamRepo, LabRepo, LotRepo, MedicalRepo, MedicalTypeRepo, MovementRepo,
    MovementTypeRepo, PatientRepo, SupplierRepo, WardRepo,
)


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "clinica_test.sqlite")
    apply_migrations(path)
    create_views(path)
    return path


def _seed_lab(db_path):
    PatientRepo(db_path).upsert([{"code": 42, "name": "Maria"}, {"code": 7, "name": "João"}])
    ExamRepo(db_path).upsert([
        {"code": "HEM", "description": "Hemograma"},
        {"code": "GLI", "description": "Glicemia"},
    ])
    LabRepo(db_path).insert_many([
        {"created_date": datetime(2024, 3, 1), "lab_date": datetime(2024, 3, 1, 9, 30),
         "exam_code": "HEM", "patient_code": 42, "result": "normal"},
        {"created_date": datetime(2024, 3, 5), "lab_date": datetime(2024, 3, 5, 23, 59),
         "exam_code": "GLI", "patient_code": 42, "result": "110"},
        {"created_date": datetime(2024, 3, 10), "lab_date": datetime(2024, 3, 10),
         "exam_code": "HEM", "patient_code": 7, "result": "anemia"},
    ])


def _seed_stock(db_path):
    MedicalTypeRepo(db_path).upsert([
        {"code": "TAB", "description": "Comprimidos"},
        {"code": "INJ", "description": "Injetáveis"},
        {"code": "OLD", "description": "Descontinuado", "active": 0},
    ])
    meds = MedicalRepo(db_path)
    meds.upsert([
        {"prod_code": "DIP500", "description": "Dipirona 500mg", "type_code": "TAB"},
        {"prod_code": "AMP01", "description": "Adrenalina ampola", "type_code": "INJ"},
    ])
    WardRepo(db_path).upsert([{"code": "UTI", "description": "Terapia Intensiva"}])
    supplier = SupplierRepo(db_path).get_or_create("Distribuidora Sul")
    dip, amp = meds.get_code("DIP500"), meds.get_code("AMP01")
    LotRepo(db_path).upsert([
        {"code": "L1", "medical_code": dip, "preparation_date": date(2024, 1, 10),
         "due_date": date(2025, 6, 30), "cost": Decimal("0.35")},
        {"code": "L2", "medical_code": amp, "due_date": date(2024, 12, 31)},
    ])
    MovementRepo(db_path).insert_many([
        {"ref_no": "NF1", "date": datetime(2024, 3, 1, 8), "medical_code": dip, "type_code": "charge",
         "quantity": 100, "lot_code": "L1", "supplier_id": supplier},
        {"ref_no": "NF2", "date": datetime(2024, 3, 2, 8), "medical_code": amp, "type_code": "charge",
         "quantity": 10, "lot_code": "L2", "supplier_id": supplier},
        {"ref_no": "D1", "date": datetime(2024, 3, 3, 14), "medical_code": dip, "type_code": "discharge",
         "ward_code": "UTI", "quantity": 20, "lot_code": "L1", "created_by": "enf.ana"},
        {"ref_no": "D2", "date": datetime(2024, 3, 4, 10), "medical_code": amp, "type_code": "expired",
         "quantity": 2, "lot_code": "L2"},
    ])
    return dip, amp


def test_migrations_seed_movement_types(db_path):
    types = {t.code: t for t in MovementTypeRepo(db_path).get_all()}
    assert types["charge"].is_charge
    assert types["discharge"].is_discharge
    with connect(db_path) as c:
        assert c.execute("PRAGMA user_version;").fetchone()[0] == 2


def test_migrations_are_idempotent(db_path):
    apply_migrations(db_path)
    create_views(db_path)
    assert len(MovementTypeRepo(db_path).get_all()) == 5


# -------------------------
# laboratório
# -------------------------

def test_lab_get_all_newest_first(db_path):
    _seed_lab(db_path)
    records = LabRepo(db_path).get_all()
    assert [r.result for r in records] == ["anemia", "110", "normal"]
    assert records[0].patient_name == "João"
    assert records[0].exam == "Hemograma"
    assert records[0].lab_date == datetime(2024, 3, 10)


def test_lab_get_by_patient(db_path):
    _seed_lab(db_path)
    records = LabRepo(db_path).get_by_patient(Patient(42))
    assert {r.exam for r in records} == {"Hemograma", "Glicemia"}


def test_lab_get_by_criteria_dates_are_inclusive_days(db_path):
    _seed_lab(db_path)
    repo = LabRepo(db_path)
    records = repo.get_by_criteria(None, date(2024, 3, 1), date(2024, 3, 5))
    assert [r.result for r in records] == ["110", "normal"]
    assert [r.result for r in repo.get_by_criteria("Hemograma", None, None)] == ["anemia", "normal"]
    assert repo.get_by_criteria("Hemograma", date(2024, 3, 1), date(2024, 3, 31), Patient(7))[0].result == "anemia"


def test_lab_delete(db_path):
    _seed_lab(db_path)
    repo = LabRepo(db_path)
    record = repo.get_all()[0]
    assert repo.delete(record) == 1
    assert record.code not in [r.code for r in repo.get_all()]


def test_patient_lookup(db_path):
    _seed_lab(db_path)
    assert PatientRepo(db_path).get_by_id(42) == Patient(42, "Maria")
    assert PatientRepo(db_path).get_by_id(999) is None


# -------------------------
# catálogos
# -------------------------

def test_catalogs(db_path):
    _seed_stock(db_path)
    assert [m.description for m in MedicalRepo(db_path).get_sorted_by_name()] == ["Adrenalina ampola", "Dipirona 500mg"]
    assert [t.code for t in MedicalTypeRepo(db_path).get_active()] == ["TAB", "INJ"]
    assert [w.code for w in WardRepo(db_path).get_sorted()] == ["UTI"]
    assert list(SupplierRepo(db_path).get_map().values()) == ["Distribuidora Sul"]


# -------------------------
# movimentos
# -------------------------

def test_get_movements_unfiltered_newest_first(db_path):
    _seed_stock(db_path)
    records = MovementRepo(db_path).get_movements(MovementQuery())
    assert [m.ref_no for m in records] == ["D2", "D1", "NF2", "NF1"]
    d1 = records[1]
    assert d1.ward.code == "UTI"
    assert d1.lot.cost == Decimal("0.35")
    assert d1.lot.preparation_date == datetime(2024, 1, 10)
    assert d1.created_by == "enf.ana"
    assert records[3].origin == "Distribuidora Sul"
    assert records[2].lot.cost is None


@pytest.mark.parametrize("query_kwargs,expected", [
    ({"movement_type": "+"}, ["NF2", "NF1"]),
    ({"movement_type": "-"}, ["D2", "D1"]),
    ({"movement_type": "expired"}, ["D2"]),
    ({"medical_type": "INJ"}, ["D2", "NF2"]),
    ({"ward": "UTI"}, ["D1"]),
    ({"mov_from": date(2024, 3, 2), "mov_to": date(2024, 3, 3)}, ["D1", "NF2"]),
    ({"lot_prep_from": date(2024, 1, 1), "lot_prep_to": date(2024, 1, 31)}, ["D1", "NF1"]),
    ({"lot_due_from": date(2024, 12, 31), "lot_due_to": date(2024, 12, 31)}, ["D2", "NF2"]),
])
def test_get_movements_filters(db_path, query_kwargs, expected):
    _seed_stock(db_path)
    records = MovementRepo(db_path).get_movements(MovementQuery(**query_kwargs))
    assert [m.ref_no for m in records] == expected


def test_get_movements_by_medical(db_path):
    dip, _ = _seed_stock(db_path)
    records = MovementRepo(db_path).get_movements(MovementQuery(medical_code=dip))
    assert [m.ref_no for m in records] == ["D1", "NF1"]


def test_last_movement_and_delete(db_path):
    _seed_stock(db_path)
    repo = MovementRepo(db_path)
    last = repo.get_last_movement()
    assert last.ref_no == "D2"
    assert repo.delete_last_movement(last) == 1
    assert repo.get_last_movement().ref_no == "D1"
    # L2 ainda é usado por NF2
    with connect(db_path) as c:
        assert c.execute("SELECT COUNT(*) FROM lot WHERE code = 'L2'").fetchone()[0] == 1


def test_delete_last_movement_removes_orphan_lot(db_path):
    _, amp = _seed_stock(db_path)
    repo = MovementRepo(db_path)
    LotRepo(db_path).upsert([{"code": "L3", "medical_code": amp}])
    repo.insert_many([{"date": datetime(2024, 3, 5), "medical_code": amp, "type_code": "charge",
                       "quantity": 5, "lot_code": "L3"}])
    repo.delete_last_movement(repo.get_last_movement())
    with connect(db_path) as c:
        assert c.execute("SELECT COUNT(*) FROM lot WHERE code = 'L3'").fetchone()[0] == 0


def test_last_movement_empty_database(db_path):
    assert MovementRepo(db_path).get_last_movement() is None


def test_sqlite_errors_become_service_errors(tmp_path):
    path = str(tmp_path / "sem_schema.sqlite")
    with pytest.raises(ServiceError) as exc:
        MovementRepo(path).get_movements(MovementQuery())
    assert exc.value.message_key == "service.failure"
