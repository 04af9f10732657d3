# clinica/adapters/xlsx_loader.py
"""
Loaders para planilhas XLSX de resultados de LABORATÓRIO e MOVIMENTOS.

Essas funções:
- leem planilhas XLSX usando pandas;
- normalizam cabeçalhos (acentos, variações, sinônimos);
- retornam listas de dicionários com as chaves esperadas pelos casos de uso
  de importação.

Observações:
- A quantidade é preservada como `quantity_raw` (parse feito no import).
- Datas são normalizadas para ISO (YYYY-MM-DD) quando possível.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import pandas as pd


# ---------------------------
# utilitários de normalização
# ---------------------------

def _slug(s: str) -> str:
    """Normaliza cabeçalhos: minúsculas, sem acentos, sem não-alfanumérico."""
    if s is None:
        return ""
    s = str(s).strip().lower()
    acentos = dict(zip("áàâãäéèêëíìîïóòôõöúùûüç", "aaaaaeeeeiiiiooooouuuuc"))
    s = "".join(acentos.get(ch, ch) for ch in s)
    s = re.sub(r"[^a-z0-9]+", " ", s)
    return re.sub(r"\s+", " ", s).strip()


def _safe_get(row, key):
    val = row.get(key)
    if val is None or pd.isna(val):
        return None
    s = str(val).strip()
    return s or None


def _to_date_iso(val: Any) -> Optional[str]:
    """Converte valor para data ISO (YYYY-MM-DD) se possível."""
    if val is None:
        return None
    if isinstance(val, pd.Timestamp):
        return val.date().isoformat()
    s = str(val).strip()
    if not s:
        return None
    # ISO vindo do Excel ("2024-03-05 00:00:00") não pode ser lido com dayfirst
    dayfirst = not re.match(r"^\d{4}-\d{2}-\d{2}", s)
    d = pd.to_datetime(s, dayfirst=dayfirst, errors="coerce")
    if pd.isna(d):
        return None
    return d.date().isoformat()


LAB_ALIASES = {
    "data": "lab_date",
    "data exame": "lab_date",
    "data do exame": "lab_date",
    "data coleta": "lab_date",
    "exame": "exam",
    "tipo exame": "exam",
    "codigo exame": "exam_code",
    "cod exame": "exam_code",
    "codigo paciente": "patient_code",
    "cod paciente": "patient_code",
    "prontuario": "patient_code",
    "paciente id": "patient_code",
    "paciente": "patient_name",
    "nome paciente": "patient_name",
    "resultado": "result",
    "material": "material",
}

MOVEMENT_ALIASES = {
    "data": "date",
    "data movimento": "date",
    "data movimentacao": "date",
    "codigo": "prod_code",
    "cod": "prod_code",
    "codigo produto": "prod_code",
    "produto": "medical",
    "medicamento": "medical",
    "descricao": "medical",
    "tipo medicamento": "medical_type",
    "categoria": "medical_type",
    "tipo": "movement_type",
    "tipo movimento": "movement_type",
    "movimento": "movement_type",
    "setor": "ward",
    "enfermaria": "ward",
    "quantidade": "quantity_raw",
    "qtde": "quantity_raw",
    "qtd": "quantity_raw",
    "lote": "lot",
    "preparacao": "preparation_date",
    "data preparacao": "preparation_date",
    "fabricacao": "preparation_date",
    "validade": "due_date",
    "data validade": "due_date",
    "vencimento": "due_date",
    "custo": "cost",
    "valor unitario": "cost",
    "preco": "cost",
    "fornecedor": "supplier",
    "origem": "supplier",
    "documento": "ref_no",
    "nota fiscal": "ref_no",
    "nf": "ref_no",
    "responsavel": "created_by",
    "usuario": "created_by",
}


def _normalize_columns(df: pd.DataFrame, aliases: Dict[str, str]) -> pd.DataFrame:
    """Renomeia colunas com base em sinônimos; sem alias, mantém o slug."""
    return df.rename(columns={col: aliases.get(_slug(col), _slug(col)) for col in df.columns})


def _read(path: str, aliases: Dict[str, str]) -> pd.DataFrame:
    df = pd.read_excel(path, dtype="string")
    return _normalize_columns(df, aliases)


# ---------------------------
# loaders públicos (XLSX)
# ---------------------------

def load_labs_from_xlsx(path: str) -> List[Dict[str, Any]]:
    """Lê XLSX de resultados de laboratório.

    Campos de saída (chaves do dict por linha):
      - lab_date: ISO date | None
      - exam: str | None        (descrição do exame)
      - exam_code: str | None   (se ausente, o import usa a descrição)
      - patient_code: str | None
      - patient_name: str | None
      - result: str | None
    """
    df = _read(path, LAB_ALIASES)
    out: List[Dict[str, Any]] = []
    for _, row in df.iterrows():
        out.append({
            "lab_date": _to_date_iso(_safe_get(row, "lab_date")),
            "exam": _safe_get(row, "exam"),
            "exam_code": _safe_get(row, "exam_code"),
            "patient_code": _safe_get(row, "patient_code"),
            "patient_name": _safe_get(row, "patient_name"),
            "result": _safe_get(row, "result"),
        })
    return out


def load_movements_from_xlsx(path: str) -> List[Dict[str, Any]]:
    """Lê XLSX de movimentos de estoque.

    Campos de saída (chaves do dict por linha):
      - date, preparation_date, due_date: ISO date | None
      - prod_code, medical, medical_type: str | None
      - movement_type: str | None (código do tipo, ex.: "charge")
      - ward, lot, supplier, ref_no, created_by: str | None
      - quantity_raw: str | None
      - cost: str | None (não convertemos para Decimal aqui)
    """
    df = _read(path, MOVEMENT_ALIASES)
    out: List[Dict[str, Any]] = []
    for _, row in df.iterrows():
        rec = {
            "date": _to_date_iso(_safe_get(row, "date")),
            "preparation_date": _to_date_iso(_safe_get(row, "preparation_date")),
            "due_date": _to_date_iso(_safe_get(row, "due_date")),
        }
        for key in ("prod_code", "medical", "medical_type", "movement_type", "ward",
                    "quantity_raw", "lot", "cost", "supplier", "ref_no", "created_by"):
            rec[key] = _safe_get(row, key)
        out.append(rec)
    return out
