"""
Utilidades de parsing para datas, quantidades e custos digitados.

As telas recebem datas como texto (``DD/MM/AAAA`` ou ISO ``AAAA-MM-DD``) e
as planilhas de movimentos trazem quantidades no formato
"<valor> <unidade> - <descrição>" (por exemplo, "5 FR - Frascos").
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

_NUM_RE = re.compile(r"[-+]?\d+(?:[.,]\d+)?")
_DATE_FORMATS = ("%d/%m/%Y", "%Y-%m-%d", "%d-%m-%Y", "%d/%m/%y")


def parse_date(txt: Optional[str]) -> Optional[date]:
    """Interpreta uma data digitada.

    Exemplos:
        "05/03/2024" → date(2024, 3, 5)
        "2024-03-05" → date(2024, 3, 5)
        ""           → None

    Raises:
        ValueError: texto preenchido que não é uma data em formato aceito.
    """
    if txt is None:
        return None
    s = str(txt).strip()
    if not s:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Data inválida: {s!r} (use DD/MM/AAAA)")


def parse_quantity(txt: Optional[str]) -> Optional[int]:
    """Extrai a quantidade inteira de "<valor> <unidade> - <descrição>".

    Exemplos:
        "5 FR - Frascos" → 5
        "12"             → 12
        "2,0 CX"         → 2
        "abc"            → None
    """
    if txt is None:
        return None
    s = str(txt).strip()
    if not s:
        return None
    head = s.split("-", 1)[0].strip() if not s.startswith("-") else s
    parts = head.split()
    if not parts:
        return None
    m = _NUM_RE.search(parts[0])
    if not m:
        return None
    return int(float(m.group(0).replace(",", ".")))


def parse_cost(txt: Optional[str]) -> Optional[Decimal]:
    """Custo unitário em Decimal; aceita "R$ 1.234,56", "10,5" ou "10.5"."""
    if txt is None:
        return None
    s = str(txt).strip().replace("R$", "").strip()
    if not s:
        return None
    if "," in s:
        s = s.replace(".", "").replace(",", ".")
    try:
        return Decimal(s)
    except InvalidOperation:
        return None
