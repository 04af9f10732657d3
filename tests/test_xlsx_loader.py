"""
Tests for the XLSX loaders: header aliases, date normalization and blanks.
"""

import pandas as pd

from clinica.adapters.xlsx_loader import (
    LAB_ALIASES, MOVEMENT_ALIASES, _normalize_columns, _slug,
    load_labs_from_xlsx, load_movements_from_xlsx,
)


def test_slug_removes_accents_and_punctuation():
    assert _slug("  Data de Preparação ") == "data de preparacao"
    assert _slug("Cód. Paciente") == "cod paciente"
    assert _slug(None) == ""


def test_normalize_columns_uses_aliases_and_keeps_unknown_slugs():
    df = pd.DataFrame({"Código": ["1"], "Tipo Movimento": ["charge"], "Observação": ["x"]})
    result = _normalize_columns(df, MOVEMENT_ALIASES)
    assert list(result.columns) == ["prod_code", "movement_type", "observacao"]


def test_load_labs_from_xlsx(tmp_path):
    path = tmp_path / "labs.xlsx"
    pd.DataFrame({
        "Data do Exame": ["05/03/2024", "2024-03-06"],
        "Exame": ["Hemograma", "Glicemia"],
        "Cód. Paciente": ["42", None],
        "Paciente": ["Maria", None],
        "Resultado": ["normal", "110"],
    }).to_excel(path, index=False)

    rows = load_labs_from_xlsx(str(path))

    assert len(rows) == 2
    assert rows[0] == {
        "lab_date": "2024-03-05",
        "exam": "Hemograma",
        "exam_code": None,
        "patient_code": "42",
        "patient_name": "Maria",
        "result": "normal",
    }
    assert rows[1]["lab_date"] == "2024-03-06"
    assert rows[1]["patient_code"] is None


def test_load_movements_from_xlsx(tmp_path):
    path = tmp_path / "movimentos.xlsx"
    pd.DataFrame({
        "Data": ["01/03/2024"],
        "Código": ["DIP500"],
        "Medicamento": ["Dipirona 500mg"],
        "Tipo": ["Carga"],
        "Quantidade": ["100 CP - Comprimidos"],
        "Lote": ["L1"],
        "Validade": ["30/06/2025"],
        "Custo": ["0,35"],
        "Fornecedor": ["Distribuidora Sul"],
    }).to_excel(path, index=False)

    rows = load_movements_from_xlsx(str(path))

    assert len(rows) == 1
    row = rows[0]
    assert row["date"] == "2024-03-01"
    assert row["due_date"] == "2025-06-30"
    assert row["preparation_date"] is None
    assert row["prod_code"] == "DIP500"
    assert row["movement_type"] == "Carga"
    assert row["quantity_raw"] == "100 CP - Comprimidos"
    assert row["cost"] == "0,35"
    assert row["supplier"] == "Distribuidora Sul"
    assert row["ward"] is None


def test_lab_aliases_cover_patient_columns():
    assert LAB_ALIASES["codigo paciente"] == "patient_code"
    assert LAB_ALIASES["paciente"] == "patient_name"
