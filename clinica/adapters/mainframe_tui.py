from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, Vertical, ScrollableContainer
from textual.widgets import (
    Button, Header, Footer, Static, Tree, Input, DataTable, Label,
    Checkbox, Select,
)
from textual.screen import ModalScreen, Screen

from clinica.config import DB_PATH, SETTINGS, Settings
from clinica.domain.errors import ValidationError
from clinica.domain.filters import (
    ALL, ALL_CHARGES, ALL_DISCHARGES, DateRange, Specific, search_medicals,
    ward_enabled,
)
from clinica.domain.totals import Totals
from clinica.infra.logger import LOG_FILES, LOGS_DIR, ENABLE_OUTPUT, ENABLE_LOGGING, log_system_event, get_log_summary
from clinica.infra.migrations import apply_migrations
from clinica.infra.views import create_views
from clinica.infra.repositories import (
    ExamRepo, LabRepo, MedicalRepo, MedicalTypeRepo, MovementRepo,
    MovementTypeRepo, PatientRepo, WardRepo,
)
from clinica.adapters.parsers import parse_date
from clinica.usecases.lab_browser import LabBrowser
from clinica.usecases.mov_stock_browser import MovStockBrowser
from clinica.usecases.importar import run_import_labs, run_import_movements


def _fmt_date(val) -> str:
    return val.strftime("%d/%m/%Y") if val else ""


def _fmt_num(val) -> str:
    return f"{val:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


class OutputScreen(Screen):
    """Screen to display command output."""

    BINDINGS = [
        ("escape", "app.pop_screen", "Back"),
        ("q", "app.pop_screen", "Back"),
    ]

    def __init__(self, title: str, content: str) -> None:
        super().__init__()
        self.title = title
        self.content = content

    def compose(self) -> ComposeResult:
        yield Header()
        with ScrollableContainer():
            yield Static(f"📋 {self.title}", classes="output-title")
            yield Static(self.content, markup=False)
        yield Footer()


class StatusDisplay(Static):
    """Display database, logging and settings status."""

    def __init__(self, db_path: str = DB_PATH, settings: Optional[Settings] = None) -> None:
        super().__init__()
        self.db_path = db_path
        self.settings = settings or SETTINGS
        self.refresh_status()

    def status_lines(self) -> List[str]:
        db_path = Path(self.db_path)
        lines = []
        if db_path.exists():
            size_mb = db_path.stat().st_size / (1024 * 1024)
            lines.append(f"✅ Database: {self.db_path} ({size_mb:.1f}MB)")
        else:
            lines.append(f"❌ Database: {self.db_path} (Not Found)")
        lines.append(("✅" if ENABLE_LOGGING else "❌") + f" Logging: {'Ativo' if ENABLE_LOGGING else 'Desativado'}")
        lines.append(("✅" if ENABLE_OUTPUT else "❌") + f" Output: {'Ativo' if ENABLE_OUTPUT else 'Desativado'}")
        lines.append(f"⚙️ Lote automático: {'sim' if self.settings.automatic_lot_in else 'não'}")
        lines.append(f"⚙️ Lote com custo: {'sim' if self.settings.lot_with_cost else 'não'}")
        return lines

    def refresh_status(self) -> None:
        self.update("\n".join(self.status_lines()))


class MenuTreeWidget(Tree):
    """Main navigation tree widget."""

    def __init__(self) -> None:
        super().__init__("🏥 Clínica - Menu Principal")
        self.setup_menu_tree()

    def setup_menu_tree(self) -> None:
        lab_node = self.root.add("🧪 Laboratório", data="laboratorio", expand=True)
        lab_node.add_leaf("🔎 Consultar Exames", data="lab-browser")
        lab_node.add_leaf("⬇️ Importar Exames (XLSX)", data="import-labs")

        stock_node = self.root.add("💊 Estoque", data="estoque", expand=True)
        stock_node.add_leaf("🔎 Movimentos de Estoque", data="mov-browser")
        stock_node.add_leaf("⬇️ Importar Movimentos (XLSX)", data="import-movements")

        sys_node = self.root.add("⚙️ Sistema", data="sistema", expand=True)
        sys_node.add_leaf("🔄 Aplicar Migrações", data="migrate")
        sys_node.add_leaf("📋 Ver Logs", data="view-logs")
        sys_node.add_leaf("📊 Resumo dos Logs", data="log-summary")


class FileInputForm(ModalScreen):
    """Modal form asking for a spreadsheet path."""

    BINDINGS = [
        ("escape", "app.pop_screen", "Cancel"),
    ]

    def __init__(self, operation: str, title: str) -> None:
        super().__init__()
        self.operation = operation
        self.title = title

    def compose(self) -> ComposeResult:
        with Container(id="file-input-modal"):
            yield Static(f"📁 {self.title}", classes="modal-title")
            with Vertical():
                yield Label("Arquivo Excel (.xlsx):")
                yield Input(placeholder="planilha.xlsx", id="file-input")
                with Horizontal():
                    yield Button("Executar", variant="primary", id="execute-btn")
                    yield Button("Cancelar", id="cancel-btn")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "execute-btn":
            file_path = self.query_one("#file-input", Input).value.strip()
            if not file_path:
                self.notify("❌ Informe o arquivo!", severity="warning")
                return
            self.dismiss({"operation": self.operation, "file": file_path})
        elif event.button.id == "cancel-btn":
            self.dismiss(None)


class ConfirmScreen(ModalScreen):
    """Yes/no confirmation; dismisses with a bool."""

    BINDINGS = [
        ("escape", "cancel", "Cancel"),
    ]

    def __init__(self, question: str) -> None:
        super().__init__()
        self.question = question

    def compose(self) -> ComposeResult:
        with Container(id="confirm-modal"):
            yield Static(f"❓ {self.question}", classes="modal-title")
            with Horizontal():
                yield Button("Sim", variant="error", id="yes-btn")
                yield Button("Não", variant="primary", id="no-btn")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "yes-btn")

    def action_cancel(self) -> None:
        self.dismiss(False)


def _parse_range(start: str, end: str) -> DateRange:
    """Inputs as typed; malformed text is a validation error of the form."""
    try:
        return DateRange(parse_date(start), parse_date(end))
    except ValueError as e:
        raise ValidationError("common.invalid_date", detail=str(e)) from e


def medical_options(include_all: bool, medicals: Sequence[Any]) -> Tuple[List[Tuple[str, Any]], Any]:
    """Options for the medical select and the value it should show.

    "Todos" stays when nothing was filtered out or when nothing matched, so
    the select is never empty.
    """
    options = [(m.description, Specific(m)) for m in medicals]
    if include_all or not options:
        return [("Todos", ALL)] + options, ALL
    return options, options[0][1]


class LabBrowserScreen(Screen):
    """Laboratory results with exam, period and patient filters."""

    BINDINGS = [
        ("escape", "app.pop_screen", "Back"),
        ("f5", "filter", "Filter"),
        ("delete", "delete", "Delete"),
    ]

    def __init__(self, db_path: str = DB_PATH, settings: Optional[Settings] = None) -> None:
        super().__init__()
        self.db_path = db_path
        self.settings = settings or SETTINGS
        self.browser = LabBrowser(LabRepo(db_path), PatientRepo(db_path), listener=self)
        self.columns = ["Código", "Data"]
        if self.settings.lab_extended:
            self.columns.append("Paciente")
        self.columns.extend(["Exame", "Resultado"])

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(classes="filters"):
            yield Select([("Todos", ALL)], value=ALL, allow_blank=False, id="exam-select")
            yield Input(placeholder="De (DD/MM/AAAA)", id="date-from")
            yield Input(placeholder="Até (DD/MM/AAAA)", id="date-to")
            yield Input(placeholder="Cód. paciente", id="patient-id")
        with Horizontal(classes="actions"):
            yield Button("🔎 Filtrar", variant="primary", id="filter-btn")
            yield Button("🗑️ Excluir", variant="error", id="delete-btn")
        table = DataTable(zebra_stripes=True, cursor_type="row", id="lab-table")
        table.add_columns(*self.columns)
        yield table
        yield Footer()

    def on_mount(self) -> None:
        exams = ExamRepo(self.db_path).get_all()
        self.query_one("#exam-select", Select).set_options(
            [("Todos", ALL)] + [(e.description, Specific(e)) for e in exams]
        )
        self.browser.list_all()

    # listener
    def records_changed(self, rows: Sequence[Any]) -> None:
        table = self.query_one("#lab-table", DataTable)
        table.clear()
        for r in rows:
            values = [str(r.code), _fmt_date(r.lab_date)]
            if self.settings.lab_extended:
                values.append(r.patient_name)
            values.extend([r.exam, r.result])
            table.add_row(*values)

    def totals_changed(self, totals: Any) -> None:
        pass

    def error_raised(self, error: Exception) -> None:
        self.notify(f"❌ {getattr(error, 'message', error)}", severity="error")

    def selection_changed(self, position: int) -> None:
        self.query_one("#lab-table", DataTable).move_cursor(row=position)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "filter-btn":
            self.action_filter()
        elif event.button.id == "delete-btn":
            self.action_delete()

    def action_filter(self) -> None:
        exam = self.query_one("#exam-select", Select).value
        try:
            dates = _parse_range(
                self.query_one("#date-from", Input).value,
                self.query_one("#date-to", Input).value,
            )
        except ValidationError as e:
            self.error_raised(e)
            return
        patient = self.query_one("#patient-id", Input).value
        self.browser.list_filtered(exam, dates.start, dates.end, patient)

    def action_delete(self) -> None:
        rows = self.browser.rows
        position = self.query_one("#lab-table", DataTable).cursor_row
        if not rows or position is None or not 0 <= position < len(rows):
            self.browser.delete_record(None)
            return
        record = rows[position]

        def _confirmed(yes: bool) -> None:
            if yes and self.browser.delete_record(record, position):
                self.notify("✅ Exame excluído.")

        self.app.push_screen(ConfirmScreen(f"Excluir o exame {record.exam} de {_fmt_date(record.lab_date)}?"), _confirmed)


class MovStockBrowserScreen(Screen):
    """Stock movements with filters and net totals."""

    BINDINGS = [
        ("escape", "app.pop_screen", "Back"),
        ("f5", "filter", "Filter"),
        ("delete", "delete", "Delete last"),
    ]

    def __init__(self, db_path: str = DB_PATH, settings: Optional[Settings] = None, today: Optional[date] = None) -> None:
        super().__init__()
        self.db_path = db_path
        self.settings = settings or SETTINGS
        self.today = today
        self.browser = MovStockBrowser(MovementRepo(db_path), self.settings, listener=self, today=today)
        self.medicals: List[Any] = []
        self.columns = ["Código", "Ref.", "Data", "Tipo", "Medicamento", "Setor", "Qtd", "Lote"]
        if not self.settings.automatic_lot_in:
            self.columns.append("Preparação")
        self.columns.append("Validade")
        if self.settings.lot_with_cost:
            self.columns.append("Custo")
        if not self.settings.single_user:
            self.columns.append("Usuário")

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(classes="filters"):
            with Vertical():
                yield Input(placeholder="Buscar medicamento", id="medical-search")
                yield Select([("Todos", ALL)], value=ALL, allow_blank=False, id="medical-select")
                yield Select([("Todos", ALL)], value=ALL, allow_blank=False, id="medical-type-select")
            with Vertical():
                yield Select([("Todos", ALL)], value=ALL, allow_blank=False, id="movement-type-select")
                yield Select([("Todos", ALL)], value=ALL, allow_blank=False, id="ward-select", disabled=True)
                yield Checkbox("Manter filtro", id="keep-filter")
            with Vertical():
                yield Label("Movimentação")
                yield Input(placeholder="De", id="mov-from")
                yield Input(placeholder="Até", id="mov-to")
            if not self.settings.automatic_lot_in:
                with Vertical():
                    yield Label("Preparação do lote")
                    yield Input(placeholder="De", id="prep-from")
                    yield Input(placeholder="Até", id="prep-to")
            with Vertical():
                yield Label("Validade do lote")
                yield Input(placeholder="De", id="due-from")
                yield Input(placeholder="Até", id="due-to")
        with Horizontal(classes="actions"):
            yield Button("🔎 Filtrar", variant="primary", id="filter-btn")
            yield Button("🗑️ Excluir último", variant="error", id="delete-btn")
            yield Button("🧹 Limpar", id="reset-btn")
        table = DataTable(zebra_stripes=True, cursor_type="row", id="mov-table")
        table.add_columns(*self.columns)
        yield table
        yield Static("", id="totals-line")
        yield Footer()

    def on_mount(self) -> None:
        self.medicals = MedicalRepo(self.db_path).get_sorted_by_name()
        self._fill_medicals(True, self.medicals)
        self.query_one("#medical-type-select", Select).set_options(
            [("Todos", ALL)] + [(t.description, Specific(t)) for t in MedicalTypeRepo(self.db_path).get_active()]
        )
        self.query_one("#movement-type-select", Select).set_options(
            [("Todos", ALL), (ALL_CHARGES.label, ALL_CHARGES), (ALL_DISCHARGES.label, ALL_DISCHARGES)]
            + [(t.description, Specific(t)) for t in MovementTypeRepo(self.db_path).get_all()]
        )
        self.query_one("#ward-select", Select).set_options(
            [("Todos", ALL)] + [(w.description, Specific(w)) for w in WardRepo(self.db_path).get_sorted()]
        )
        self._show_criteria_dates()
        self.browser.list_movements()

    # -------------------------
    # listener
    # -------------------------

    def records_changed(self, rows: Sequence[Any]) -> None:
        table = self.query_one("#mov-table", DataTable)
        table.clear()
        for m in rows:
            sign = "+" if m.type.is_charge else "-"
            values = [
                str(m.code), m.ref_no, _fmt_date(m.date), m.type.description,
                m.medical.description, m.ward.description if m.ward else "",
                f"{sign}{m.quantity}", m.lot.code if m.lot else "",
            ]
            if not self.settings.automatic_lot_in:
                values.append(_fmt_date(m.lot.preparation_date) if m.lot else "")
            values.append(_fmt_date(m.lot.due_date) if m.lot else "")
            if self.settings.lot_with_cost:
                values.append(_fmt_num(m.lot.cost) if m.lot and m.lot.cost is not None else "")
            if not self.settings.single_user:
                values.append(m.created_by or "")
            table.add_row(*values)

    def totals_changed(self, totals: Totals) -> None:
        text = f"Total: quantidade {totals.net_quantity}"
        if self.settings.lot_with_cost:
            text += f" | valor {_fmt_num(totals.net_amount)}"
        self.query_one("#totals-line", Static).update(text)

    def error_raised(self, error: Exception) -> None:
        self.notify(f"❌ {getattr(error, 'message', error)}", severity="error")

    def selection_changed(self, position: int) -> None:
        self.query_one("#mov-table", DataTable).move_cursor(row=position)

    # -------------------------
    # filtros
    # -------------------------

    def _fill_medicals(self, include_all: bool, medicals: Sequence[Any]) -> None:
        options, value = medical_options(include_all, medicals)
        select = self.query_one("#medical-select", Select)
        with self.prevent(Select.Changed):
            select.set_options(options)
            select.value = value
        criteria = self.browser.select_medical(value)
        self._set_select("#medical-type-select", criteria.medical_type)

    def _set_select(self, select_id: str, value: Any) -> None:
        select = self.query_one(select_id, Select)
        with self.prevent(Select.Changed):
            select.value = value

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "medical-search":
            include_all, results = search_medicals(event.value, self.medicals)
            self._fill_medicals(include_all, results)

    def on_select_changed(self, event: Select.Changed) -> None:
        select_id = event.select.id
        if select_id == "medical-select":
            criteria = self.browser.select_medical(event.value)
            self._set_select("#medical-type-select", criteria.medical_type)
        elif select_id == "medical-type-select":
            criteria = self.browser.select_medical_type(event.value)
            self._set_select("#medical-select", criteria.medical)
        elif select_id == "movement-type-select":
            criteria = self.browser.select_movement_type(event.value)
            ward = self.query_one("#ward-select", Select)
            ward.disabled = not ward_enabled(criteria.movement_type)
            self._set_select("#ward-select", criteria.ward)
        elif select_id == "ward-select":
            self.browser.select_ward(event.value)
        else:
            return
        if self.browser.keep_filter:
            self.action_filter()

    def on_checkbox_changed(self, event: Checkbox.Changed) -> None:
        if event.checkbox.id == "keep-filter":
            self.browser.keep_filter = event.value

    def _value(self, input_id: str) -> str:
        found = self.query(input_id)
        return found.first(Input).value if found else ""

    def _read_dates(self) -> bool:
        try:
            mov = _parse_range(self._value("#mov-from"), self._value("#mov-to"))
            prep = _parse_range(self._value("#prep-from"), self._value("#prep-to"))
            due = _parse_range(self._value("#due-from"), self._value("#due-to"))
        except ValidationError as e:
            self.error_raised(e)
            return False
        self.browser.set_movement_dates(mov.start, mov.end)
        self.browser.set_lot_preparation_dates(prep.start, prep.end)
        self.browser.set_lot_due_dates(due.start, due.end)
        return True

    def _show_criteria_dates(self) -> None:
        criteria = self.browser.criteria
        pairs = {
            "#mov-from": criteria.movement.start, "#mov-to": criteria.movement.end,
            "#prep-from": criteria.lot_preparation.start, "#prep-to": criteria.lot_preparation.end,
            "#due-from": criteria.lot_due.start, "#due-to": criteria.lot_due.end,
        }
        for input_id, value in pairs.items():
            found = self.query(input_id)
            if found:
                found.first(Input).value = _fmt_date(value)

    def action_filter(self) -> None:
        if self._read_dates():
            self.browser.list_movements()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "filter-btn":
            self.action_filter()
        elif event.button.id == "delete-btn":
            self.action_delete()
        elif event.button.id == "reset-btn":
            self.action_reset()

    def action_reset(self) -> None:
        criteria = self.browser.reset_filters(self.today)
        self.query_one("#medical-search", Input).value = ""
        for select_id in ("#medical-select", "#medical-type-select", "#movement-type-select", "#ward-select"):
            self._set_select(select_id, ALL)
        self.query_one("#ward-select", Select).disabled = not ward_enabled(criteria.movement_type)
        self._show_criteria_dates()

    def action_delete(self) -> None:
        rows = self.browser.records
        position = self.query_one("#mov-table", DataTable).cursor_row
        if not rows or position is None or not 0 <= position < len(rows):
            self.browser.delete_last_movement(None)
            return
        record = rows[position]

        def _confirmed(yes: bool) -> None:
            if yes and self.browser.delete_last_movement(record):
                self.notify("✅ Movimento excluído.")

        self.app.push_screen(ConfirmScreen(f"Excluir o movimento {record.code} ({record.medical.description})?"), _confirmed)


class ClinicaMainframeApp(App):
    """Main TUI application: lab and stock browsers."""

    CSS = """
    Screen {
        background: #001122;
    }

    .modal-title {
        background: #003366;
        color: #ffffff;
        text-align: center;
        padding: 1;
        margin-bottom: 1;
    }

    .output-title {
        background: #004488;
        color: #ffffff;
        text-align: center;
        padding: 1;
        margin-bottom: 1;
    }

    Container#file-input-modal, Container#confirm-modal {
        background: #112233;
        border: solid #00aaff;
        width: 60;
        height: 15;
        margin: 2;
    }

    .filters {
        height: auto;
    }

    .actions {
        height: auto;
    }

    #totals-line {
        background: #003366;
        color: #ffffff;
        padding: 0 1;
    }

    Tree {
        background: #001a33;
        color: #ccddff;
    }

    StatusDisplay {
        background: #003366;
        color: #ffffff;
        padding: 1;
    }

    Button {
        margin: 1;
    }
    """

    TITLE = "🏥 Clínica - Laboratório e Estoque"
    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh Status"),
    ]

    def __init__(self, db_path: str = DB_PATH, settings: Optional[Settings] = None) -> None:
        super().__init__()
        self.db_path = db_path
        self.settings = settings or SETTINGS
        self.status_display: Optional[StatusDisplay] = None
        self.actions: Dict[str, Callable[[], None]] = {
            "lab-browser": lambda: self.push_screen(LabBrowserScreen(self.db_path, self.settings)),
            "mov-browser": lambda: self.push_screen(MovStockBrowserScreen(self.db_path, self.settings)),
            "import-labs": lambda: self.push_screen(
                FileInputForm("import-labs", "Importar Exames (XLSX)"), self.on_file_input_result),
            "import-movements": lambda: self.push_screen(
                FileInputForm("import-movements", "Importar Movimentos (XLSX)"), self.on_file_input_result),
            "migrate": self.run_migrations,
            "view-logs": lambda: self.show_log_content("transactions"),
            "log-summary": self.show_log_summary,
        }

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal():
            with Container(classes="left-panel"):
                yield MenuTreeWidget()
            with Vertical(classes="right-panel"):
                self.status_display = StatusDisplay(self.db_path, self.settings)
                yield self.status_display
                yield Static("""
🏥 **CLÍNICA - LABORATÓRIO E ESTOQUE**

**Como usar:**
- Use as setas ↑↓ para navegar no menu
- Pressione ENTER para abrir uma tela
- Nas telas: F5 filtra, DEL exclui, ESC volta
- Pressione 'q' para sair
                """, classes="info-panel")
        yield Footer()

    def on_tree_node_selected(self, event: Tree.NodeSelected) -> None:
        if event.node.data:
            self.execute_action(event.node.data)

    def execute_action(self, action: str) -> None:
        log_system_event("tui_action_start", {"action": action})
        handler = self.actions.get(action)
        if handler is None:
            return
        try:
            handler()
        except Exception as e:
            log_system_event("tui_action_error", {"action": action, "error": str(e)}, level="error")
            self.notify(f"❌ Erro: {str(e)}", severity="error")

    def run_migrations(self) -> None:
        apply_migrations(self.db_path)
        create_views(self.db_path)
        self.notify(f"✅ Migrações aplicadas em {self.db_path}")
        self.action_refresh()

    def on_file_input_result(self, result: Optional[Dict[str, str]]) -> None:
        if not result:
            return
        file_path = result["file"]
        if not Path(file_path).exists():
            self.push_screen(OutputScreen("Arquivo não encontrado", f"Arquivo '{file_path}' não existe."))
            return
        try:
            if result["operation"] == "import-labs":
                info = run_import_labs(file_path, self.db_path)
            else:
                info = run_import_movements(file_path, self.db_path)
        except Exception as e:
            self.push_screen(OutputScreen("Erro ao importar arquivo", str(e)))
            return
        self.push_screen(OutputScreen("Importação", "\n".join(f"{k}: {v}" for k, v in info.items())))

    def show_log_content(self, log_type: str) -> None:
        log_system_event("view_logs", {"log_type": log_type})
        self.push_screen(OutputScreen(f"📋 Logs - {log_type}", get_log_summary(log_type, lines=500)))

    def show_log_summary(self) -> None:
        summary_text = "📊 **RESUMO DOS LOGS DO SISTEMA**\n\n"
        for name, log_path in LOG_FILES.items():
            if log_path.exists():
                size_kb = log_path.stat().st_size / 1024
                with open(log_path, "r", encoding="utf-8") as f:
                    lines = len(f.readlines())
                summary_text += f"✅ {name}: {lines} linhas ({size_kb:.1f} KB)\n"
            else:
                summary_text += f"❌ {name}: Arquivo não encontrado\n"
        summary_text += f"\n📁 Diretório de logs: {LOGS_DIR}\n"
        self.push_screen(OutputScreen("Resumo dos Logs", summary_text))

    def action_refresh(self) -> None:
        if self.status_display:
            self.status_display.refresh_status()
        self.notify("🔄 Status atualizado!", timeout=2)


def main() -> None:
    """Run the mainframe TUI application."""
    app = ClinicaMainframeApp()
    app.run()


if __name__ == "__main__":
    main()
