"""
Contrato entre as telas (view-models) e a camada de apresentação.

A TUI e os testes implementam apenas os métodos de que precisam; a classe
base ignora todas as notificações.
"""

from __future__ import annotations

from typing import Any, Sequence


class BrowserListener:
    """Recebe as mudanças de estado publicadas por um browser."""

    def records_changed(self, rows: Sequence[Any]) -> None:
        pass

    def totals_changed(self, totals: Any) -> None:
        pass

    def error_raised(self, error: Exception) -> None:
        pass

    def selection_changed(self, position: int) -> None:
        pass


class RecordingListener(BrowserListener):
    """Guarda todas as notificações recebidas (usado pela CLI e nos testes)."""

    def __init__(self) -> None:
        self.rows: list = []
        self.totals: Any = None
        self.errors: list = []
        self.selected: Any = None

    def records_changed(self, rows: Sequence[Any]) -> None:
        self.rows = list(rows)

    def totals_changed(self, totals: Any) -> None:
        self.totals = totals

    def error_raised(self, error: Exception) -> None:
        self.errors.append(error)

    def selection_changed(self, position: int) -> None:
        self.selected = position
