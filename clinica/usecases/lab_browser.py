# clinica/usecases/lab_browser.py
"""
UC: Tela de listagem de exames laboratoriais.

- list_all():            todos os resultados, na ordem do serviço.
- list_by_patient_id():  resultados de um paciente a partir do código digitado.
- list_filtered():       exame + período (+ paciente, se informado).
- delete_record():       exclui no serviço e remove da lista.
- record_inserted() / record_updated(): mantêm a lista após inclusão/edição.

Obs.:
- A lista interna é guardada na ordem inversa da exibida (a linha 0 da
  tabela é o último elemento). Toda conversão de posição passa por
  ``storage_index``.
- Nenhum erro do serviço escapa desta classe: falhas que não são
  ``ClinicaError`` viram ``ServiceError``. A lista é esvaziada, o erro vai
  para o listener e fica em ``last_error``.
"""

from __future__ import annotations

from typing import Any, List, Optional, Union

from clinica.domain.errors import ClinicaError, ServiceError, ValidationError
from clinica.domain.filters import (
    All, DateRange, LabFilterCriteria, Selection, Specific, exam_name,
    parse_patient_id, validate_range,
)
from clinica.domain.models import LabRecord
from clinica.infra.logger import log_lab, log_transaction
from clinica.usecases.listener import BrowserListener


def storage_index(length: int, position: int) -> int:
    """Converte a posição exibida (0 = topo) no índice da lista interna."""
    if not 0 <= position < length:
        raise IndexError(f"posição {position} fora da lista ({length} registros)")
    return length - 1 - position


def _exam_param(exam: Union[Selection, str, None]) -> Optional[str]:
    if isinstance(exam, (All, Specific)):
        return exam_name(exam)
    return exam or None


class LabBrowser:
    def __init__(self, lab_service: Any, patient_service: Any, listener: Optional[BrowserListener] = None):
        self.lab_service = lab_service
        self.patient_service = patient_service
        self.listener = listener or BrowserListener()
        self._storage: List[LabRecord] = []
        self.selected: Optional[int] = None
        self.last_error: Optional[ClinicaError] = None

    @property
    def rows(self) -> List[LabRecord]:
        """Registros na ordem exibida."""
        return list(reversed(self._storage))

    def __len__(self) -> int:
        return len(self._storage)

    # -------------------------
    # estado interno
    # -------------------------

    def _replace(self, records) -> List[LabRecord]:
        self._storage = list(reversed(list(records)))
        self.last_error = None
        self.listener.records_changed(self.rows)
        return self.rows

    def _fail(self, error: ClinicaError) -> List[LabRecord]:
        self._storage = []
        self.last_error = error
        log_lab("error", key=error.message_key)
        self.listener.records_changed([])
        self.listener.error_raised(error)
        return []

    def _select(self, position: int) -> None:
        self.selected = position
        self.listener.selection_changed(position)

    def _resolve_patient(self, raw: Optional[str]):
        """Retorna (informado, paciente). Levanta ValidationError se não numérico."""
        code = parse_patient_id(raw)
        if code is None:
            return False, None
        return True, self.patient_service.get_by_id(code)

    # -------------------------
    # consultas
    # -------------------------

    def list_all(self) -> List[LabRecord]:
        try:
            result = self.lab_service.get_all()
        except ServiceError as e:
            return self._fail(e)
        except Exception as e:
            return self._fail(ServiceError(str(e)))
        log_lab("list_all", rows=len(result))
        return self._replace(result)

    def list_by_patient_id(self, raw: Optional[str]) -> List[LabRecord]:
        """Texto vazio → lista vazia; paciente inexistente → lista vazia."""
        try:
            informed, patient = self._resolve_patient(raw)
            if patient is None:
                log_lab("list_by_patient", patient=raw, informed=informed, rows=0)
                return self._replace([])
            result = self.lab_service.get_by_patient(patient)
        except (ValidationError, ServiceError) as e:
            return self._fail(e)
        except Exception as e:
            return self._fail(ServiceError(str(e)))
        log_lab("list_by_patient", patient=patient.code, rows=len(result))
        return self._replace(result)

    def list_filtered(
        self,
        exam: Union[Selection, str, None],
        date_from=None,
        date_to=None,
        patient_id_raw: Optional[str] = "",
    ) -> List[LabRecord]:
        try:
            validate_range("lab", DateRange(date_from, date_to))
            informed, patient = self._resolve_patient(patient_id_raw)
            if informed and patient is None:
                log_lab("list_filtered", patient=patient_id_raw, rows=0)
                return self._replace([])
            result = self.lab_service.get_by_criteria(_exam_param(exam), date_from, date_to, patient)
        except (ValidationError, ServiceError) as e:
            return self._fail(e)
        except Exception as e:
            return self._fail(ServiceError(str(e)))
        log_lab("list_filtered", exam=_exam_param(exam), date_from=date_from, date_to=date_to, rows=len(result))
        return self._replace(result)

    def apply(self, criteria: LabFilterCriteria) -> List[LabRecord]:
        return self.list_filtered(criteria.exam, criteria.dates.start, criteria.dates.end, criteria.patient_id_raw)

    # -------------------------
    # manutenção da lista
    # -------------------------

    def delete_record(self, record: Optional[LabRecord], position: Optional[int] = None) -> bool:
        """Exclui o registro no serviço e o remove da posição exibida."""
        if record is None:
            self.last_error = ValidationError("common.select_row")
            self.listener.error_raised(self.last_error)
            return False
        rows = self.rows
        if position is None or not 0 <= position < len(rows) or rows[position].code != record.code:
            codes = [r.code for r in rows]
            position = codes.index(record.code) if record.code in codes else None
        try:
            self.lab_service.delete(record)
        except Exception as e:
            error = e if isinstance(e, ServiceError) else ServiceError(str(e))
            log_transaction("lab_delete", {"code": record.code}, error=str(e))
            self._fail(error)
            return False
        log_transaction("lab_delete", {"code": record.code}, result="ok")
        log_lab("delete", record.code, position=position)
        if position is not None:
            del self._storage[storage_index(len(self._storage), position)]
        self.listener.records_changed(self.rows)
        return True

    def record_inserted(self, record: LabRecord) -> None:
        self._storage.append(record)
        log_lab("insert", record.code)
        self.listener.records_changed(self.rows)
        self._select(0)

    def record_updated(self, record: LabRecord, position: int) -> bool:
        try:
            idx = storage_index(len(self._storage), position)
        except IndexError:
            self.last_error = ValidationError("common.select_row")
            self.listener.error_raised(self.last_error)
            return False
        self._storage[idx] = record
        log_lab("update", record.code, position=position)
        self.listener.records_changed(self.rows)
        self._select(position)
        return True
