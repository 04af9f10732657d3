"""
Totais da lista de movimentos de estoque.

A quantidade líquida só faz sentido quando a lista está restrita a um
único medicamento; somar comprimidos com frascos não tem significado, e a
tela mostra "N/A" nesse caso. O valor líquido é sempre calculado em
``Decimal`` sobre os lotes que possuem custo.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Union

from clinica.domain.models import Movement


class NotApplicable:
    """Marcador de total não aplicável (lista com vários medicamentos)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_APPLICABLE"

    def __str__(self) -> str:
        return "N/A"


NOT_APPLICABLE = NotApplicable()


@dataclass(frozen=True)
class Totals:
    net_quantity: Union[int, NotApplicable]
    net_amount: Decimal


EMPTY_TOTALS = Totals(net_quantity=NOT_APPLICABLE, net_amount=Decimal(0))


def compute_totals(records: Iterable[Movement], single_item: bool, lot_with_cost: bool = True) -> Totals:
    """Calcula quantidade e valor líquidos de uma lista de movimentos.

    Regras:
        - ``net_quantity`` é ``NOT_APPLICABLE`` se ``single_item`` for falso;
          senão soma ``+quantidade`` para cargas ("+") e ``-quantidade``
          para as demais.
        - ``net_amount`` soma ``±quantidade * custo`` apenas dos lotes com
          custo definido; lotes sem custo contribuem com zero.
        - Com ``lot_with_cost`` desligado o valor líquido é zero.

    Args:
        records: Movimentos da lista atual.
        single_item: Se o filtro está restrito a um único medicamento.
        lot_with_cost: Se os lotes do sistema possuem custo.

    Returns:
        ``Totals`` com a quantidade e o valor líquidos.
    """
    records = list(records)
    quantity: Union[int, NotApplicable] = NOT_APPLICABLE
    if single_item:
        quantity = sum(mov.signed_quantity for mov in records)

    amount = Decimal(0)
    if lot_with_cost:
        for mov in records:
            cost = mov.lot.cost if mov.lot is not None else None
            if cost is None:
                continue
            amount += Decimal(mov.signed_quantity) * Decimal(cost)
    return Totals(net_quantity=quantity, net_amount=amount)
