"""
Tests for the mainframe TUI widgets and screens.
"""

import asyncio
from datetime import date

import pytest
from unittest.mock import Mock

from textual.widgets import Input, Select

from clinica.config import Settings
from clinica.domain.errors import ValidationError
from clinica.domain.filters import ALL, Specific
from clinica.domain.models import Medical, MedicalType
from clinica.infra.migrations import apply_migrations
from clinica.infra.repositories import MedicalRepo, MedicalTypeRepo
from clinica.infra.views import create_views
from clinica.adapters.mainframe_tui import (
    StatusDisplay, MenuTreeWidget, FileInputForm, ConfirmScreen,
    LabBrowserScreen, MovStockBrowserScreen, ClinicaMainframeApp, _parse_range, medical_options,
)


class TestStatusDisplay:
    """Test the status display widget."""

    def test_missing_database(self, tmp_path):
        status = StatusDisplay(str(tmp_path / "nao_existe.sqlite"), Settings())
        lines = status.status_lines()
        assert "Not Found" in lines[0]
        assert any("Lote com custo: sim" in line for line in lines)

    def test_existing_database(self, tmp_path):
        db = tmp_path / "clinica.sqlite"
        db.write_bytes(b"")
        status = StatusDisplay(str(db), Settings(automatic_lot_in=True))
        lines = status.status_lines()
        assert lines[0].startswith("✅ Database")
        assert any("Lote automático: sim" in line for line in lines)


class TestMenuTreeWidget:
    """Test the menu tree widget."""

    def test_menu_structure(self):
        tree = MenuTreeWidget()
        category_labels = [str(child.label) for child in tree.root.children]
        for expected in ["Laboratório", "Estoque", "Sistema"]:
            assert any(expected in label for label in category_labels)

    def test_every_leaf_has_an_action(self):
        tree = MenuTreeWidget()
        app = ClinicaMainframeApp()
        leaves = [leaf.data for node in tree.root.children for leaf in node.children]
        assert leaves
        assert all(leaf in app.actions for leaf in leaves)


class TestModals:

    def test_file_input_form(self):
        form = FileInputForm("import-labs", "Importar Exames (XLSX)")
        assert form.operation == "import-labs"
        assert form.title == "Importar Exames (XLSX)"

    def test_confirm_screen(self):
        assert ConfirmScreen("Excluir?").question == "Excluir?"


class TestBrowserScreens:

    def test_lab_columns(self, tmp_path):
        db = str(tmp_path / "clinica.sqlite")
        assert LabBrowserScreen(db, Settings()).columns == ["Código", "Data", "Exame", "Resultado"]
        extended = LabBrowserScreen(db, Settings(lab_extended=True))
        assert "Paciente" in extended.columns

    def test_movement_columns(self, tmp_path):
        db = str(tmp_path / "clinica.sqlite")
        screen = MovStockBrowserScreen(db, Settings())
        assert "Preparação" in screen.columns
        assert "Custo" in screen.columns
        assert "Usuário" in screen.columns

        screen = MovStockBrowserScreen(db, Settings(automatic_lot_in=True, lot_with_cost=False, single_user=True))
        assert "Preparação" not in screen.columns
        assert "Custo" not in screen.columns
        assert "Usuário" not in screen.columns
        assert screen.columns[-1] == "Validade"

    def test_parse_range(self):
        dates = _parse_range("01/03/2024", "")
        assert dates.start is not None and dates.end is None
        with pytest.raises(ValidationError) as exc:
            _parse_range("31/02/2024", "01/03/2024")
        assert exc.value.message_key == "common.invalid_date"


class TestClinicaMainframeApp:
    """Test the main TUI application."""

    def test_app_creation(self):
        app = ClinicaMainframeApp()
        assert "Clínica" in app.title

    def test_execute_action_pushes_screens(self, tmp_path):
        app = ClinicaMainframeApp(str(tmp_path / "clinica.sqlite"), Settings())
        app.push_screen = Mock()

        app.execute_action("import-labs")
        screen = app.push_screen.call_args[0][0]
        assert isinstance(screen, FileInputForm)
        assert screen.operation == "import-labs"

        app.push_screen.reset_mock()
        app.execute_action("mov-browser")
        assert isinstance(app.push_screen.call_args[0][0], MovStockBrowserScreen)

    def test_unknown_action_is_ignored(self):
        app = ClinicaMainframeApp()
        app.push_screen = Mock()
        app.execute_action("desconhecida")
        app.push_screen.assert_not_called()

    def test_missing_import_file(self, tmp_path):
        app = ClinicaMainframeApp(str(tmp_path / "clinica.sqlite"), Settings())
        app.push_screen = Mock()
        app.on_file_input_result({"operation": "import-labs", "file": str(tmp_path / "nada.xlsx")})
        assert app.push_screen.call_args[0][0].title == "Arquivo não encontrado"


TABLETS = MedicalType("TAB", "Comprimidos")
AMOXICILINA = Medical(1, "AMX500", "Amoxicilina", TABLETS)
DIPIRONA = Medical(2, "DIP500", "Dipirona", TABLETS)


class TestMedicalOptions:

    def test_all_medicals_keep_todos(self):
        options, value = medical_options(True, [AMOXICILINA, DIPIRONA])
        assert options[0] == ("Todos", ALL)
        assert value == ALL

    def test_narrowed_search_selects_first_match(self):
        options, value = medical_options(False, [DIPIRONA])
        assert options == [("Dipirona", Specific(DIPIRONA))]
        assert value == Specific(DIPIRONA)

    def test_no_match_is_never_empty(self):
        options, value = medical_options(False, [])
        assert options == [("Todos", ALL)]
        assert value == ALL


def _seeded_db(tmp_path) -> str:
    db = str(tmp_path / "clinica.sqlite")
    apply_migrations(db)
    create_views(db)
    MedicalTypeRepo(db).upsert([{"code": "TAB", "description": "Comprimidos"}])
    MedicalRepo(db).upsert([
        {"prod_code": "AMX500", "description": "Amoxicilina", "type_code": "TAB"},
        {"prod_code": "DIP500", "description": "Dipirona", "type_code": "TAB"},
    ])
    return db


def _search(db: str, *texts: str):
    """Types each text in the medical search; returns (select value, criteria) after each."""
    seen = []

    async def scenario():
        app = ClinicaMainframeApp(db, Settings())
        async with app.run_test() as pilot:
            screen = MovStockBrowserScreen(db, Settings(), today=date(2024, 3, 15))
            app.push_screen(screen)
            await pilot.pause()
            for text in texts:
                screen.query_one("#medical-search", Input).value = text
                await pilot.pause()
                seen.append((
                    screen.query_one("#medical-select", Select).value,
                    screen.browser.criteria.medical,
                ))

    asyncio.run(scenario())
    return seen


class TestMedicalSearch:

    def test_search_without_match_keeps_screen_usable(self, tmp_path):
        [(shown, criteria)] = _search(_seeded_db(tmp_path), "zzzz")
        assert shown == ALL
        assert criteria == ALL

    def test_search_selection_follows_into_filter(self, tmp_path):
        narrowed, cleared = _search(_seeded_db(tmp_path), "amox", "")
        shown, criteria = narrowed
        assert isinstance(shown, Specific) and shown.value.description == "Amoxicilina"
        assert criteria == shown
        assert cleared == (ALL, ALL)
