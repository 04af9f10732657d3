"""
Critérios de filtro das telas e montagem dos parâmetros de consulta.

Este módulo concentra as regras que transformam as seleções feitas na tela
(combos, campos de data, código de paciente) em parâmetros para os
repositórios. As funções são puras: não tocam em estado compartilhado e
levantam ``ValidationError`` quando a combinação informada é inválida.

Cada dimensão de filtro é uma ``Selection``: ``All`` (sem restrição) ou
``Specific(valor)``. O tipo de movimento aceita ainda ``AllCharges`` e
``AllDischarges``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, List, Optional, Tuple, Union

from clinica.domain.errors import ValidationError


# -------------------------
# Seleções
# -------------------------

@dataclass(frozen=True)
class All:
    label = "Todos"

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class AllCharges:
    label = "Todas as cargas"

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class AllDischarges:
    label = "Todas as descargas"

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class Specific:
    value: Any

    def __str__(self) -> str:
        return str(self.value)


ALL = All()
ALL_CHARGES = AllCharges()
ALL_DISCHARGES = AllDischarges()

Selection = Union[All, Specific]
MovementTypeSelection = Union[All, AllCharges, AllDischarges, Specific]


def _code(sel: Any) -> Optional[Any]:
    """Código do valor selecionado (ou o próprio valor), None para ALL."""
    if not isinstance(sel, Specific):
        return None
    return getattr(sel.value, "code", sel.value)


def movement_type_code(sel: MovementTypeSelection) -> Optional[str]:
    """Converte a seleção de tipo de movimento no parâmetro da consulta.

    ``ALL`` → ``None``; ``ALL_CHARGES`` → ``"+"``; ``ALL_DISCHARGES`` →
    ``"-"``; ``Specific`` → código do tipo.
    """
    if isinstance(sel, AllCharges):
        return "+"
    if isinstance(sel, AllDischarges):
        return "-"
    return _code(sel)


def ward_enabled(sel: MovementTypeSelection) -> bool:
    """O filtro por setor só se aplica a descargas."""
    if isinstance(sel, AllDischarges):
        return True
    if isinstance(sel, Specific):
        return bool(getattr(sel.value, "is_discharge", False))
    return False


# -------------------------
# Períodos
# -------------------------

@dataclass(frozen=True)
class DateRange:
    """Período fechado [start, end]; ou os dois limites ou nenhum."""
    start: Optional[date] = None
    end: Optional[date] = None

    @property
    def is_empty(self) -> bool:
        return self.start is None and self.end is None

    def validate(self, incomplete_key: str, inverted_key: str, field_name: Optional[str] = None) -> None:
        if (self.start is None) != (self.end is None):
            raise ValidationError(incomplete_key, field=field_name)
        if self.start is not None and self.start > self.end:
            raise ValidationError(inverted_key, field=field_name)


# chaves de mensagem por período: (incompleto, invertido)
RANGE_KEYS = {
    "movement": ("stock.invalid_movement_dates", "stock.movement_dates_inverted"),
    "lot_preparation": ("stock.invalid_preparation_dates", "stock.preparation_dates_inverted"),
    "lot_due": ("stock.invalid_due_dates", "stock.due_dates_inverted"),
    "lab": ("lab.invalid_dates", "lab.dates_inverted"),
}


def validate_range(name: str, rng: DateRange) -> None:
    incomplete, inverted = RANGE_KEYS[name]
    rng.validate(incomplete, inverted, field_name=name)


def last_weeks(today: date, weeks: int = 1) -> DateRange:
    """Período padrão das telas: de ``weeks`` semanas atrás até hoje."""
    return DateRange(today - timedelta(weeks=weeks), today)


# -------------------------
# Laboratório
# -------------------------

_INT_RE = re.compile(r"^[+-]?\d+$")


def parse_patient_id(raw: Optional[str]) -> Optional[int]:
    """Interpreta o código de paciente digitado.

    Texto vazio (ou só espaços) significa "sem paciente" e retorna ``None``.
    Qualquer coisa que não seja um inteiro levanta ``ValidationError``.
    """
    s = (raw or "").strip()
    if not s:
        return None
    if not _INT_RE.match(s):
        raise ValidationError("lab.invalid_patient_id", field="patient_id")
    return int(s)


def exam_name(sel: Selection) -> Optional[str]:
    """Nome do exame usado pelo serviço, ou None para todos os exames."""
    if not isinstance(sel, Specific):
        return None
    return str(sel.value)


@dataclass(frozen=True)
class LabFilterCriteria:
    exam: Selection = ALL
    dates: DateRange = field(default_factory=DateRange)
    patient_id_raw: str = ""


# -------------------------
# Estoque
# -------------------------

@dataclass(frozen=True)
class StockFilterCriteria:
    """Seleções da tela de movimentos. Medicamento e tipo são exclusivos."""
    medical: Selection = ALL
    medical_type: Selection = ALL
    movement_type: MovementTypeSelection = ALL
    ward: Selection = ALL
    movement: DateRange = field(default_factory=DateRange)
    lot_preparation: DateRange = field(default_factory=DateRange)
    lot_due: DateRange = field(default_factory=DateRange)

    @property
    def single_item(self) -> bool:
        return isinstance(self.medical, Specific)


@dataclass(frozen=True)
class MovementQuery:
    """Parâmetros validados para ``get_movements``."""
    medical_code: Optional[int] = None
    medical_type: Optional[str] = None
    ward: Optional[str] = None
    movement_type: Optional[str] = None
    mov_from: Optional[date] = None
    mov_to: Optional[date] = None
    lot_prep_from: Optional[date] = None
    lot_prep_to: Optional[date] = None
    lot_due_from: Optional[date] = None
    lot_due_to: Optional[date] = None


def build_movement_query(criteria: StockFilterCriteria, automatic_lot: bool = False) -> MovementQuery:
    """Valida os critérios e monta a consulta de movimentos.

    Regras:
        - Os períodos são verificados na ordem movimento, preparação do
          lote e validade do lote; o primeiro inválido interrompe.
        - Em modo de lote automático o período de preparação é ignorado.
        - Medicamento e tipo de medicamento não podem ser ambos específicos.

    Raises:
        ValidationError: período incompleto, invertido ou filtros exclusivos.
    """
    validate_range("movement", criteria.movement)
    if not automatic_lot:
        validate_range("lot_preparation", criteria.lot_preparation)
    validate_range("lot_due", criteria.lot_due)

    if isinstance(criteria.medical, Specific) and isinstance(criteria.medical_type, Specific):
        raise ValidationError("stock.exclusive_medical_filter", field="medical")

    prep = DateRange() if automatic_lot else criteria.lot_preparation
    return MovementQuery(
        medical_code=_code(criteria.medical),
        medical_type=_code(criteria.medical_type),
        ward=_code(criteria.ward),
        movement_type=movement_type_code(criteria.movement_type),
        mov_from=criteria.movement.start,
        mov_to=criteria.movement.end,
        lot_prep_from=prep.start,
        lot_prep_to=prep.end,
        lot_due_from=criteria.lot_due.start,
        lot_due_to=criteria.lot_due.end,
    )


def search_medicals(text: Optional[str], medicals: Iterable[Any]) -> Tuple[bool, List[Any]]:
    """Filtra medicamentos pelo texto de busca.

    O texto é quebrado em palavras; basta uma delas aparecer no código do
    produto ou na descrição (sem diferenciar maiúsculas). Texto vazio
    devolve todos.

    Returns:
        ``(include_all, resultados)``; ``include_all`` é verdadeiro quando
        nenhum medicamento foi descartado, caso em que a opção "Todos"
        continua disponível.
    """
    medicals = list(medicals)
    patterns = [p.lower() for p in (text or "").split() if p]
    if not patterns:
        return True, medicals
    results = []
    for med in medicals:
        code = (getattr(med, "prod_code", "") or "").lower()
        desc = (getattr(med, "description", "") or "").lower()
        if any(p in code or p in desc for p in patterns):
            results.append(med)
    return len(results) == len(medicals), results


def compile_file_name(criteria: StockFilterCriteria) -> str:
    """Nome sugerido para o razão de estoque, a partir dos filtros ativos."""
    parts = ["Stock Ledger"]
    for sel in (criteria.medical, criteria.medical_type, criteria.movement_type, criteria.ward):
        if not isinstance(sel, All):
            parts.append(str(sel))
    for d in (criteria.movement.start, criteria.movement.end):
        if d is not None:
            parts.append(d.strftime("%Y%m%d"))
    return "_".join(parts)
