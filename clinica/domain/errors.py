"""
Erros de domínio das telas de laboratório e de movimentação de estoque.

Todos os erros carregam uma chave de mensagem (``message_key``) que a camada
de apresentação usa para exibir um texto ao usuário. Nenhum deles é fatal:
as telas sempre se recuperam limpando ou mantendo a lista atual.

Taxonomia:
    - ``ValidationError``: entrada do usuário malformada ou contraditória.
    - ``ServiceError``: falha do serviço de consulta/persistência.
    - ``ConcurrencyConflict``: o movimento selecionado não é mais o último.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


MESSAGES: Dict[str, str] = {
    "common.select_row": "Selecione uma linha.",
    "common.invalid_date": "Data inválida: {detail}",
    "lab.invalid_patient_id": "Informe um código de paciente válido.",
    "lab.invalid_dates": "Informe um período válido (data inicial e final).",
    "lab.dates_inverted": "A data inicial não pode ser posterior à data final.",
    "stock.invalid_movement_dates": "Informe um período de movimentação válido.",
    "stock.movement_dates_inverted": "A data inicial da movimentação não pode ser posterior à final.",
    "stock.invalid_preparation_dates": "Informe um período de preparação válido.",
    "stock.preparation_dates_inverted": "A data inicial de preparação não pode ser posterior à final.",
    "stock.invalid_due_dates": "Informe um período de validade válido.",
    "stock.due_dates_inverted": "A data inicial de validade não pode ser posterior à final.",
    "stock.exclusive_medical_filter": "Filtre por medicamento OU por tipo de medicamento, não ambos.",
    "stock.no_movement_selected": "Selecione um movimento.",
    "stock.only_last_movement": "Apenas o último movimento pode ser excluído.",
    "service.failure": "Falha ao consultar o serviço: {detail}",
}


class ClinicaError(Exception):
    """Erro base recuperável, identificado por uma chave de mensagem."""

    def __init__(self, message_key: str, **params: Any) -> None:
        self.message_key = message_key
        self.params = params
        super().__init__(self.message)

    @property
    def message(self) -> str:
        template = MESSAGES.get(self.message_key, self.message_key)
        try:
            return template.format(**self.params)
        except (KeyError, IndexError):
            return template


class ValidationError(ClinicaError):
    """Entrada inválida: id não numérico, período incompleto ou invertido, filtros exclusivos."""

    def __init__(self, message_key: str, field: Optional[str] = None, **params: Any) -> None:
        self.field = field
        super().__init__(message_key, **params)


class ServiceError(ClinicaError):
    """Falha do colaborador de persistência."""

    def __init__(self, detail: str = "", message_key: str = "service.failure") -> None:
        super().__init__(message_key, detail=detail)


class ConcurrencyConflict(ClinicaError):
    """O movimento que se quer excluir não é mais o último do sistema."""

    def __init__(self, expected_code: Any = None, actual_code: Any = None) -> None:
        self.expected_code = expected_code
        self.actual_code = actual_code
        super().__init__("stock.only_last_movement")
