# clinica/infra/logger.py
"""
Sistema de logging das telas de laboratório e de estoque.

Este módulo configura e fornece loggers para registrar as operações das
telas: consultas filtradas, exclusões, importações e acesso ao banco.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in {"1", "true", "sim", "yes", "on"}


# Flag global para habilitar/desabilitar logging
ENABLE_LOGGING = _env_flag("CLINICA_LOGGING")
# Flag global para habilitar/desabilitar prints/output
ENABLE_OUTPUT = _env_flag("CLINICA_OUTPUT")


def print_system(*args, **kwargs):
    """Print controlado pelo ENABLE_OUTPUT."""
    if ENABLE_OUTPUT:
        print(*args, **kwargs)


# Configuração base dos loggers
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logger(name: str, log_file: str, level: int = logging.INFO) -> logging.Logger:
    """
    Configura um logger específico com arquivo de saída.

    Args:
        name: Nome do logger
        log_file: Caminho do arquivo de log
        level: Nível de logging (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Logger configurado
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    while logger.handlers:
        logger.removeHandler(logger.handlers[0])

    # delay=True: o arquivo só é criado na primeira mensagem
    file_handler = logging.FileHandler(log_file, encoding='utf-8', delay=True)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger


# Diretório base para logs (na pasta do pacote, ou CLINICA_LOGS_DIR)
BASE_DIR = Path(__file__).parent.parent
LOGS_DIR = Path(os.environ.get("CLINICA_LOGS_DIR", str(BASE_DIR / "logs")))

LOG_FILES = {
    "transactions": LOGS_DIR / "transactions.log",
    "lab": LOGS_DIR / "lab.log",
    "movimentos": LOGS_DIR / "movimentos.log",
    "database": LOGS_DIR / "database.log",
    "system": LOGS_DIR / "system.log",
}

transaction_logger = setup_logger('clinica.transactions', str(LOG_FILES["transactions"]))
lab_logger = setup_logger('clinica.lab', str(LOG_FILES["lab"]))
movimento_logger = setup_logger('clinica.movimentos', str(LOG_FILES["movimentos"]))
database_logger = setup_logger('clinica.database', str(LOG_FILES["database"]))
system_logger = setup_logger('clinica.system', str(LOG_FILES["system"]))


def log_transaction(operation: str, data: Dict[str, Any], result: Optional[Any] = None, error: Optional[str] = None) -> None:
    """
    Registra uma operação completa (consulta, exclusão, importação).

    Args:
        operation: Nome da operação
        data: Parâmetros da operação
        result: Resultado da operação (opcional)
        error: Mensagem de erro (opcional)
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    if error:
        transaction_logger.error(f"TRANSACTION_FAILED: {operation} - {error} - Data: {data}")
    else:
        transaction_logger.info(f"TRANSACTION_SUCCESS: {operation} - Result: {result} - Data: {data}")


def log_lab(action: str, code: Any = None, **kwargs) -> None:
    """Log específico da tela de laboratório (list, delete, insert, update)."""
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {"action": action, "code": code, **kwargs}
    lab_logger.info(f"LAB_{action.upper()}: {log_data}")


def log_movimento(action: str, code: Any = None, **kwargs) -> None:
    """Log específico da tela de movimentos de estoque."""
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {"action": action, "code": code, **kwargs}
    movimento_logger.info(f"MOVIMENTO_{action.upper()}: {log_data}")


def log_database_operation(table: str, operation: str, affected_rows: int = 0, **kwargs) -> None:
    """
    Log específico para operações no banco de dados.

    Args:
        table: Nome da tabela
        operation: Operação SQL (INSERT, DELETE, SELECT)
        affected_rows: Número de linhas afetadas
        **kwargs: Dados adicionais
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {"table": table, "operation": operation, "affected_rows": affected_rows, **kwargs}
    database_logger.info(f"DB_{operation}: {log_data}")


def log_system_event(event: str, details: Dict[str, Any] = None, level: str = "info") -> None:
    """
    Log para eventos do sistema.

    Args:
        event: Descrição do evento
        details: Detalhes adicionais (opcional)
        level: Nível do log (info, warning, error)
    """
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {"event": event, "details": details or {}}
    log_method = getattr(system_logger, level.lower(), system_logger.info)
    log_method(f"SYSTEM_EVENT: {event} - {log_data}")


def log_file_operation(operation: str, file_path: str, rows_processed: int = 0, **kwargs) -> None:
    """Log para importação de planilhas."""
    if not (ENABLE_LOGGING or ENABLE_OUTPUT):
        return
    log_data = {"operation": operation, "file_path": file_path, "rows_processed": rows_processed, **kwargs}
    system_logger.info(f"FILE_{operation.upper()}: {log_data}")


def get_log_summary(log_type: str = "transactions", lines: int = 100) -> str:
    """
    Obtém as últimas linhas de um log.

    Args:
        log_type: Tipo de log (transactions, lab, movimentos, database, system)
        lines: Número de linhas a retornar

    Returns:
        Conteúdo do log como string
    """
    log_file = LOG_FILES.get(log_type)
    if not log_file or not log_file.exists():
        return f"Log {log_type} não encontrado."

    try:
        with open(log_file, 'r', encoding='utf-8') as f:
            all_lines = f.readlines()
    except OSError as e:
        return f"Erro ao ler log {log_type}: {e}"
    return ''.join(all_lines[-lines:])
