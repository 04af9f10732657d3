# clinica/domain/models.py
"""
Modelos (dataclasses) do domínio.

Observação importante:
- Os registros são projeções somente-leitura devolvidas pelos repositórios;
  uma nova consulta substitui a lista inteira em vez de alterar registros.
- O sinal de um movimento de estoque vem do tipo de movimento ("+" carga,
  "-" descarga); a quantidade armazenada nunca é negativa.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class Patient:
    """Paciente (somente o necessário para o filtro do laboratório)."""
    code: int
    name: str = ""


@dataclass(frozen=True)
class Exam:
    """Exame de laboratório; a descrição é o nome usado no filtro."""
    code: str
    description: str

    def __str__(self) -> str:
        return self.description


@dataclass(frozen=True)
class LabRecord:
    """Resultado de exame laboratorial."""
    code: int
    created_date: datetime
    lab_date: datetime
    exam: str
    patient_name: str = ""
    patient_code: Optional[int] = None
    result: str = ""


@dataclass(frozen=True)
class MedicalType:
    """Categoria de medicamento."""
    code: str
    description: str

    def __str__(self) -> str:
        return self.description


@dataclass(frozen=True)
class Medical:
    """Medicamento / item farmacêutico."""
    code: int
    prod_code: str
    description: str
    type: MedicalType

    def __str__(self) -> str:
        return self.description


@dataclass(frozen=True)
class MovementType:
    """Tipo de movimento de estoque.

    ``type`` carrega o marcador de sinal: contém ``"+"`` para cargas e
    ``"-"`` para descargas.
    """
    code: str
    description: str
    type: str
    category: str = ""

    @property
    def is_charge(self) -> bool:
        return "+" in self.type

    @property
    def is_discharge(self) -> bool:
        return "-" in self.type

    def __str__(self) -> str:
        return self.description


@dataclass(frozen=True)
class Ward:
    """Setor/enfermaria destino de uma descarga."""
    code: str
    description: str

    def __str__(self) -> str:
        return self.description


@dataclass(frozen=True)
class Lot:
    """Lote de um medicamento."""
    code: str
    preparation_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    cost: Optional[Decimal] = None


@dataclass(frozen=True)
class Movement:
    """Movimento de estoque (carga ou descarga)."""
    code: int
    ref_no: str
    date: datetime
    medical: Medical
    type: MovementType
    quantity: int
    lot: Lot
    ward: Optional[Ward] = None
    origin: Optional[str] = None
    created_by: Optional[str] = None

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.type.is_charge else -self.quantity
