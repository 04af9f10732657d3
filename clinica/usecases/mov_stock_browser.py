# clinica/usecases/mov_stock_browser.py
"""
UC: Tela de movimentos de estoque (cargas e descargas).

- list_movements():        valida os filtros e faz UMA consulta ao serviço.
- compute_totals():        quantidade e valor líquidos da lista atual.
- delete_last_movement():  exclui o movimento selecionado se for o último.
- select_*/set_*:          alteram os filtros (critério imutável, substituído).
- reset_filters():         volta aos filtros padrão.

Obs.:
- A exclusão confere o último movimento e só depois pede a exclusão; entre
  a conferência e a exclusão outro usuário pode inserir um movimento. Essa
  janela é aceita: o serviço não oferece uma exclusão atômica.
- Erros de validação e do serviço são entregues ao listener e guardados em
  ``last_error``; não escapam desta classe. Falhas que não são
  ``ClinicaError`` viram ``ServiceError``.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Any, List, Optional

from clinica.config import SETTINGS, Settings
from clinica.domain.errors import ClinicaError, ConcurrencyConflict, ServiceError, ValidationError
from clinica.domain.filters import (
    ALL, DateRange, MovementTypeSelection, Selection, Specific,
    StockFilterCriteria, build_movement_query, compile_file_name, last_weeks,
    ward_enabled,
)
from clinica.domain.models import Movement
from clinica.domain.totals import EMPTY_TOTALS, Totals, compute_totals
from clinica.infra.logger import log_movimento, log_transaction
from clinica.usecases.listener import BrowserListener


class MovStockBrowser:
    def __init__(
        self,
        movement_service: Any,
        settings: Optional[Settings] = None,
        listener: Optional[BrowserListener] = None,
        today: Optional[date] = None,
    ):
        self.movement_service = movement_service
        self.settings = settings or SETTINGS
        self.listener = listener or BrowserListener()
        self.criteria = self._default_criteria(today)
        self.applied: Optional[StockFilterCriteria] = None
        self.keep_filter = False
        self.totals: Totals = EMPTY_TOTALS
        self.last_error: Optional[ClinicaError] = None
        self._records: List[Movement] = []

    def _default_criteria(self, today: Optional[date]) -> StockFilterCriteria:
        weeks = self.settings.default_movement_window_weeks
        return StockFilterCriteria(movement=last_weeks(today or date.today(), weeks))

    @property
    def records(self) -> List[Movement]:
        return list(self._records)

    # -------------------------
    # estado interno
    # -------------------------

    def _publish(self) -> None:
        self.totals = self.compute_totals()
        self.listener.records_changed(self.records)
        self.listener.totals_changed(self.totals)

    def _report(self, error: ClinicaError) -> None:
        self.last_error = error
        log_movimento("error", key=error.message_key)
        self.listener.error_raised(error)

    def _fail(self, error: ClinicaError) -> List[Movement]:
        self._records = []
        self._publish()
        self._report(error)
        return []

    # -------------------------
    # consulta e totais
    # -------------------------

    def list_movements(self, criteria: Optional[StockFilterCriteria] = None) -> List[Movement]:
        if criteria is not None:
            self.criteria = criteria
        return self._run(self.criteria)

    def _run(self, criteria: StockFilterCriteria) -> List[Movement]:
        try:
            query = build_movement_query(criteria, automatic_lot=self.settings.automatic_lot_in)
            result = self.movement_service.get_movements(query)
        except (ValidationError, ServiceError) as e:
            return self._fail(e)
        except Exception as e:
            return self._fail(ServiceError(str(e)))
        self._records = list(result)
        self.applied = criteria
        self.last_error = None
        log_movimento("list", rows=len(self._records), query=query)
        self._publish()
        return self.records

    def refresh(self) -> List[Movement]:
        """Refaz a última consulta aplicada; filtros ainda não aplicados ficam como estão."""
        return self._run(self.applied or self.criteria)

    def compute_totals(self, records: Optional[List[Movement]] = None) -> Totals:
        scope = self.applied or self.criteria
        return compute_totals(
            self._records if records is None else records,
            single_item=scope.single_item,
            lot_with_cost=self.settings.lot_with_cost,
        )

    # -------------------------
    # exclusão
    # -------------------------

    def delete_last_movement(self, record: Optional[Movement]) -> bool:
        """Exclui ``record`` se ele ainda for o último movimento do sistema."""
        if record is None:
            self._report(ValidationError("stock.no_movement_selected"))
            return False
        try:
            last = self.movement_service.get_last_movement()
            if last is None or last.code != record.code:
                raise ConcurrencyConflict(record.code, last.code if last is not None else None)
            self.movement_service.delete_last_movement(last)
        except ConcurrencyConflict as e:
            log_transaction("delete_last_movement", {"code": record.code}, error=e.message)
            self._report(e)
            return False
        except Exception as e:
            error = e if isinstance(e, ServiceError) else ServiceError(str(e))
            log_transaction("delete_last_movement", {"code": record.code}, error=error.message)
            self._fail(error)
            return False
        log_transaction("delete_last_movement", {"code": record.code}, result="ok")
        self.refresh()
        return True

    # -------------------------
    # filtros
    # -------------------------

    def select_medical(self, sel: Selection) -> StockFilterCriteria:
        if isinstance(sel, Specific):
            self.criteria = replace(self.criteria, medical=sel, medical_type=ALL)
        else:
            self.criteria = replace(self.criteria, medical=sel)
        return self.criteria

    def select_medical_type(self, sel: Selection) -> StockFilterCriteria:
        if isinstance(sel, Specific):
            self.criteria = replace(self.criteria, medical_type=sel, medical=ALL)
        else:
            self.criteria = replace(self.criteria, medical_type=sel)
        return self.criteria

    def select_movement_type(self, sel: MovementTypeSelection) -> StockFilterCriteria:
        ward = self.criteria.ward if ward_enabled(sel) else ALL
        self.criteria = replace(self.criteria, movement_type=sel, ward=ward)
        return self.criteria

    def select_ward(self, sel: Selection) -> StockFilterCriteria:
        if not ward_enabled(self.criteria.movement_type):
            sel = ALL
        self.criteria = replace(self.criteria, ward=sel)
        return self.criteria

    def set_movement_dates(self, start: Optional[date], end: Optional[date]) -> StockFilterCriteria:
        self.criteria = replace(self.criteria, movement=DateRange(start, end))
        return self.criteria

    def set_lot_preparation_dates(self, start: Optional[date], end: Optional[date]) -> StockFilterCriteria:
        self.criteria = replace(self.criteria, lot_preparation=DateRange(start, end))
        return self.criteria

    def set_lot_due_dates(self, start: Optional[date], end: Optional[date]) -> StockFilterCriteria:
        self.criteria = replace(self.criteria, lot_due=DateRange(start, end))
        return self.criteria

    def reset_filters(self, today: Optional[date] = None) -> StockFilterCriteria:
        self.criteria = self._default_criteria(today)
        log_movimento("reset", keep_filter=self.keep_filter)
        if self.keep_filter:
            self.list_movements()
        return self.criteria

    # -------------------------
    # outros
    # -------------------------

    def movement_inserted(self, record: Movement) -> None:
        """Novo movimento registrado em outra tela: entra no topo da lista."""
        self._records.insert(0, record)
        log_movimento("insert", record.code)
        self._publish()
        self.listener.selection_changed(0)

    def file_name(self) -> str:
        return compile_file_name(self.applied or self.criteria)
