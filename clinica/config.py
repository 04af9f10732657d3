# clinica/config.py
"""
Configurações globais e valores padrão das telas da clínica.

As flags espelham os parâmetros gerais do sistema hospitalar (lote
automático, lote com custo, laboratório estendido, usuário único) e podem
ser sobrescritas por variáveis de ambiente.
"""

import os
from dataclasses import dataclass


# Caminho padrão do banco de dados SQLite
DB_PATH = os.environ.get("CLINICA_DB", os.path.join(os.getcwd(), "clinica.db"))


def _env_flag(name: str, default: bool) -> bool:
    val = os.environ.get(name)
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "t", "sim", "s", "y", "yes", "on"}


@dataclass
class Settings:
    """Parâmetros gerais que alteram o comportamento das telas."""
    automatic_lot_in: bool = False   # lotes gerados pelo sistema (sem filtro de preparação)
    lot_with_cost: bool = True       # lotes possuem custo unitário
    lab_extended: bool = False       # exibe coluna de paciente no laboratório
    single_user: bool = False        # oculta a coluna de usuário
    default_movement_window_weeks: int = 1


def load_settings() -> Settings:
    """Monta as configurações a partir das variáveis de ambiente."""
    return Settings(
        automatic_lot_in=_env_flag("CLINICA_AUTOMATIC_LOT", False),
        lot_with_cost=_env_flag("CLINICA_LOT_WITH_COST", True),
        lab_extended=_env_flag("CLINICA_LAB_EXTENDED", False),
        single_user=_env_flag("CLINICA_SINGLE_USER", False),
    )


# Instância global das configurações
SETTINGS = load_settings()
