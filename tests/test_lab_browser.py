from datetime import date, datetime

import pytest

from clinica.domain.errors import ServiceError, ValidationError
from clinica.domain.filters import ALL, DateRange, LabFilterCriteria, Specific
from clinica.domain.models import Exam, LabRecord, Patient
from clinica.usecases.lab_browser import LabBrowser, storage_index
from clinica.usecases.listener import RecordingListener


def _rec(code, exam="Hemograma", patient=None):
    return LabRecord(
        code=code,
        created_date=datetime(2024, 3, 1),
        lab_date=datetime(2024, 3, code),
        exam=exam,
        patient_code=patient,
    )


class FakeLabService:
    def __init__(self, records=None, fail=False):
        self.records = list(records or [])
        self.fail = fail
        self.calls = []

    def _call(self, name, *args):
        self.calls.append((name, args))
        if self.fail:
            raise ServiceError("banco indisponível")

    def get_all(self):
        self._call("get_all")
        return list(self.records)

    def get_by_patient(self, patient):
        self._call("get_by_patient", patient)
        return [r for r in self.records if r.patient_code == patient.code]

    def get_by_criteria(self, exam, date_from, date_to, patient):
        self._call("get_by_criteria", exam, date_from, date_to, patient)
        return list(self.records)

    def delete(self, record):
        self._call("delete", record)


class FakePatientService:
    def __init__(self, patients=()):
        self.patients = {p.code: p for p in patients}
        self.calls = []

    def get_by_id(self, code):
        self.calls.append(code)
        return self.patients.get(code)


@pytest.fixture
def listener():
    return RecordingListener()


def _browser(records=(), patients=(), listener=None, fail=False):
    lab = FakeLabService(records, fail=fail)
    pats = FakePatientService(patients)
    return LabBrowser(lab, pats, listener), lab, pats


# -------------------------
# storage_index
# -------------------------

def test_storage_index_reverses_position():
    assert storage_index(3, 0) == 2
    assert storage_index(3, 2) == 0
    assert storage_index(1, 0) == 0


@pytest.mark.parametrize("length,position", [(0, 0), (3, 3), (3, -1)])
def test_storage_index_out_of_range(length, position):
    with pytest.raises(IndexError):
        storage_index(length, position)


# -------------------------
# consultas
# -------------------------

def test_list_all_keeps_service_order(listener):
    records = [_rec(3), _rec(2), _rec(1)]
    browser, lab, _ = _browser(records, listener=listener)
    assert browser.list_all() == records
    assert browser.rows == records
    assert listener.rows == records
    assert lab.calls == [("get_all", ())]


def test_list_by_patient_id_blank_makes_no_calls():
    browser, lab, pats = _browser([_rec(1)])
    assert browser.list_by_patient_id("") == []
    assert pats.calls == []
    assert lab.calls == []
    assert browser.last_error is None


def test_list_by_patient_id_non_numeric_is_validation_error(listener):
    browser, lab, pats = _browser([_rec(1)], listener=listener)
    browser.list_all()
    assert browser.list_by_patient_id("abc") == []
    assert isinstance(browser.last_error, ValidationError)
    assert browser.last_error.message_key == "lab.invalid_patient_id"
    assert pats.calls == []
    assert lab.calls == [("get_all", ())]
    assert browser.rows == []
    assert listener.errors == [browser.last_error]


def test_list_by_patient_id_unknown_patient_is_empty():
    browser, lab, pats = _browser([_rec(1, patient=42)])
    assert browser.list_by_patient_id("42") == []
    assert pats.calls == [42]
    assert lab.calls == []
    assert browser.last_error is None


def test_list_by_patient_id_delegates_to_patient_query():
    records = [_rec(2, patient=42), _rec(1, patient=7)]
    browser, lab, _ = _browser(records, patients=[Patient(42, "Maria")])
    assert browser.list_by_patient_id("42") == [records[0]]
    assert lab.calls == [("get_by_patient", (Patient(42, "Maria"),))]


def test_list_filtered_without_patient():
    browser, lab, pats = _browser([_rec(1)])
    result = browser.list_filtered(Specific(Exam("HEM", "Hemograma")), date(2024, 3, 1), date(2024, 3, 31), "")
    assert result == [_rec(1)]
    assert pats.calls == []
    assert lab.calls == [("get_by_criteria", ("Hemograma", date(2024, 3, 1), date(2024, 3, 31), None))]


def test_list_filtered_with_patient_constrains_query():
    patient = Patient(42, "Maria")
    browser, lab, _ = _browser([_rec(1, patient=42)], patients=[patient])
    browser.list_filtered(ALL, None, None, "42")
    assert lab.calls == [("get_by_criteria", (None, None, None, patient))]


def test_list_filtered_unknown_patient_makes_no_lab_call():
    browser, lab, _ = _browser([_rec(1)])
    assert browser.list_filtered("Hemograma", None, None, "99") == []
    assert lab.calls == []


@pytest.mark.parametrize("date_from,date_to,key", [
    (date(2024, 3, 1), None, "lab.invalid_dates"),
    (None, date(2024, 3, 1), "lab.invalid_dates"),
    (date(2024, 3, 2), date(2024, 3, 1), "lab.dates_inverted"),
])
def test_list_filtered_invalid_dates_make_no_calls(date_from, date_to, key):
    browser, lab, pats = _browser([_rec(1)])
    assert browser.list_filtered(ALL, date_from, date_to, "42") == []
    assert browser.last_error.message_key == key
    assert lab.calls == []
    assert pats.calls == []


def test_apply_criteria():
    browser, lab, _ = _browser([_rec(1)])
    browser.apply(LabFilterCriteria(dates=DateRange(date(2024, 3, 1), date(2024, 3, 2))))
    assert lab.calls == [("get_by_criteria", (None, date(2024, 3, 1), date(2024, 3, 2), None))]


def test_service_failure_empties_list(listener):
    browser, lab, _ = _browser([_rec(1)], listener=listener)
    browser.list_all()
    lab.fail = True
    assert browser.list_all() == []
    assert isinstance(browser.last_error, ServiceError)
    assert "banco indisponível" in browser.last_error.message
    assert browser.rows == []
    assert listener.rows == []


# -------------------------
# manutenção da lista
# -------------------------

def test_delete_record_removes_displayed_row():
    records = [_rec(3), _rec(2), _rec(1)]
    browser, lab, _ = _browser(records)
    browser.list_all()
    assert browser.delete_record(records[1], 1) is True
    assert browser.rows == [records[0], records[2]]
    assert lab.calls[-1] == ("delete", (records[1],))


def test_delete_record_finds_position_when_not_given():
    records = [_rec(3), _rec(2), _rec(1)]
    browser, _, _ = _browser(records)
    browser.list_all()
    browser.delete_record(records[2])
    assert browser.rows == records[:2]


def test_delete_without_selection():
    browser, lab, _ = _browser([_rec(1)])
    assert browser.delete_record(None) is False
    assert browser.last_error.message_key == "common.select_row"
    assert lab.calls == []


def test_delete_failure_resets_list():
    browser, lab, _ = _browser([_rec(1)])
    browser.list_all()
    lab.fail = True
    assert browser.delete_record(_rec(1), 0) is False
    assert browser.rows == []


def test_inserted_record_shows_on_top_and_is_selected(listener):
    records = [_rec(2), _rec(1)]
    browser, _, _ = _browser(records, listener=listener)
    browser.list_all()
    new = _rec(9)
    browser.record_inserted(new)
    assert browser.rows[0] == new
    assert browser.rows[1:] == records
    assert listener.selected == 0


def test_updated_record_replaces_displayed_row(listener):
    records = [_rec(3), _rec(2), _rec(1)]
    browser, _, _ = _browser(records, listener=listener)
    browser.list_all()
    for position in range(3):
        changed = _rec(records[position].code, exam="Glicemia")
        assert browser.record_updated(changed, position)
        assert browser.rows[position] == changed
        assert listener.selected == position
    assert [r.code for r in browser.rows] == [3, 2, 1]


def test_insert_then_update_addresses_the_intended_record():
    browser, _, _ = _browser([_rec(2), _rec(1)])
    browser.list_all()
    browser.record_inserted(_rec(5))
    browser.record_updated(_rec(1, exam="Ureia"), 2)
    assert [(r.code, r.exam) for r in browser.rows] == [(5, "Hemograma"), (2, "Hemograma"), (1, "Ureia")]


def test_update_out_of_range():
    browser, _, _ = _browser([_rec(1)])
    browser.list_all()
    assert browser.record_updated(_rec(1), 5) is False
    assert browser.last_error.message_key == "common.select_row"
    assert len(browser) == 1


def test_delete_record_with_stale_position_removes_the_deleted_record():
    records = [_rec(3), _rec(2), _rec(1)]
    browser, _, _ = _browser(records)
    browser.list_all()
    assert browser.delete_record(records[2], 0) is True
    assert [r.code for r in browser.rows] == [3, 2]


def test_delete_record_with_out_of_range_position():
    records = [_rec(2), _rec(1)]
    browser, lab, _ = _browser(records)
    browser.list_all()
    assert browser.delete_record(records[0], 7) is True
    assert [r.code for r in browser.rows] == [1]
    assert lab.calls[-1] == ("delete", (records[0],))


# -------------------------
# falhas inesperadas do serviço
# -------------------------

class BrokenLabService(FakeLabService):
    def _call(self, name, *args):
        self.calls.append((name, args))
        raise RuntimeError("connection reset")


class BrokenPatientService(FakePatientService):
    def __init__(self, error):
        super().__init__()
        self.error = error

    def get_by_id(self, code):
        self.calls.append(code)
        raise self.error


@pytest.mark.parametrize("action", [
    lambda b: b.list_all(),
    lambda b: b.list_by_patient_id("42"),
    lambda b: b.list_filtered(ALL, None, None, ""),
])
def test_unexpected_service_error_is_reported(listener, action):
    lab = BrokenLabService([_rec(1)])
    browser = LabBrowser(lab, FakePatientService([Patient(42)]), listener)
    assert action(browser) == []
    assert isinstance(browser.last_error, ServiceError)
    assert "connection reset" in browser.last_error.message
    assert listener.errors == [browser.last_error]
    assert listener.rows == []


def test_unexpected_delete_error_is_reported(listener):
    browser = LabBrowser(BrokenLabService(), FakePatientService(), listener)
    assert browser.delete_record(_rec(1), 0) is False
    assert isinstance(browser.last_error, ServiceError)
    assert browser.rows == []


@pytest.mark.parametrize("error", [ServiceError("timeout"), RuntimeError("timeout")])
def test_patient_lookup_failure_empties_list(listener, error):
    lab = FakeLabService([_rec(1, patient=42)])
    browser = LabBrowser(lab, BrokenPatientService(error), listener)
    browser.list_all()
    assert browser.list_by_patient_id("42") == []
    assert isinstance(browser.last_error, ServiceError)
    assert browser.rows == []
    assert listener.errors == [browser.last_error]
    assert [name for name, _ in lab.calls] == ["get_all"]
