# clinica/adapters/cli.py
"""
CLI das telas da clínica (Typer).

Comandos principais:
- migrate                      -> aplica migrações e cria views
- tui                          -> abre a interface terminal (Textual)
- lab listar                   -> lista exames (filtros: exame, período, paciente)
- lab excluir <codigo>         -> exclui um resultado de exame
- mov listar                   -> lista movimentos de estoque com totais
- mov excluir-ultimo <codigo>  -> exclui o movimento se ainda for o último
- importar labs <xlsx>         -> importa resultados de laboratório
- importar movimentos <xlsx>   -> importa movimentos de estoque
- logs                         -> mostra as últimas linhas de um log
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from clinica.config import DB_PATH, SETTINGS
from clinica.domain.errors import ClinicaError
from clinica.domain.filters import (
    ALL, ALL_CHARGES, ALL_DISCHARGES, DateRange, Specific,
    StockFilterCriteria, last_weeks,
)
from clinica.domain.totals import Totals
from clinica.infra.logger import LOG_FILES, get_log_summary
from clinica.infra.migrations import apply_migrations
from clinica.infra.views import create_views
from clinica.infra.repositories import (
    LabRepo, MedicalRepo, MedicalTypeRepo, MovementRepo, MovementTypeRepo,
    PatientRepo, WardRepo,
)
from clinica.adapters.parsers import parse_date
from clinica.usecases.lab_browser import LabBrowser
from clinica.usecases.listener import RecordingListener
from clinica.usecases.mov_stock_browser import MovStockBrowser
from clinica.usecases.importar import run_import_labs, run_import_movements


app = typer.Typer(help="Clínica — laboratório e movimentos de estoque")
console = Console()


# -----------------------
# util
# -----------------------

def _fmt_num(val: Any) -> str:
    """Número no formato brasileiro (1.234,56)."""
    if isinstance(val, (Decimal, float)):
        return f"{val:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return str(val)


def _fmt_date(val: Optional[datetime]) -> str:
    return val.strftime("%d/%m/%Y") if val else ""


def _date_opt(value: Optional[str], name: str) -> Optional[date]:
    try:
        return parse_date(value)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint=name)


def _show_error(error: ClinicaError) -> None:
    console.print(Panel(error.message, title="Erro", border_style="red"))
    raise typer.Exit(code=1)


def _display_labs(rows: List[Any], extended: bool) -> None:
    if not rows:
        console.print(Panel("Nenhum exame encontrado", title="Laboratório", border_style="yellow"))
        return
    table = Table(title="Laboratório", box=box.ROUNDED)
    table.add_column("Código", justify="right")
    table.add_column("Data", justify="center")
    if extended:
        table.add_column("Paciente")
    table.add_column("Exame")
    table.add_column("Resultado")
    for r in rows:
        values = [str(r.code), _fmt_date(r.lab_date)]
        if extended:
            values.append(r.patient_name)
        values.extend([r.exam, r.result])
        table.add_row(*values)
    console.print(table)


def _display_movements(rows: List[Any], totals: Totals, show_user: bool) -> None:
    if not rows:
        console.print(Panel("Nenhum movimento encontrado", title="Movimentos", border_style="yellow"))
        return
    table = Table(title="Movimentos de Estoque", box=box.ROUNDED, show_footer=True)
    columns = [
        ("Código", "right"), ("Ref.", "left"), ("Data", "center"), ("Tipo", "left"),
        ("Medicamento", "left"), ("Setor", "left"), ("Qtd", "right"), ("Lote", "left"),
        ("Preparação", "center"), ("Validade", "center"), ("Custo", "right"),
    ]
    if show_user:
        columns.append(("Usuário", "left"))
    footer = {"Código": "Total", "Qtd": str(totals.net_quantity), "Custo": _fmt_num(totals.net_amount)}
    for name, justify in columns:
        table.add_column(name, justify=justify, footer=footer.get(name, ""))

    for m in rows:
        sign = "+" if m.type.is_charge else "-"
        quantity = f"{sign}{m.quantity}"
        if m.type.is_charge:
            quantity = f"[green]{quantity}[/]"
        else:
            quantity = f"[red]{quantity}[/]"
        values = [
            str(m.code),
            m.ref_no,
            _fmt_date(m.date),
            m.type.description,
            m.medical.description,
            m.ward.description if m.ward else "",
            quantity,
            m.lot.code if m.lot else "",
            _fmt_date(m.lot.preparation_date) if m.lot else "",
            _fmt_date(m.lot.due_date) if m.lot else "",
            _fmt_num(m.lot.cost) if m.lot and m.lot.cost is not None else "",
        ]
        if show_user:
            values.append(m.created_by or "")
        table.add_row(*values)
    console.print(table)


# -----------------------
# comandos de infra
# -----------------------

@app.command("migrate")
def cmd_migrate(db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")):
    """Aplica migrações e recria as views auxiliares."""
    apply_migrations(db_path)
    create_views(db_path)
    typer.echo(f">> Migrações aplicadas e views criadas em: {db_path}")


@app.command("tui")
def cmd_tui():
    """Inicia a Interface Terminal (TUI) interativa."""
    from clinica.adapters.mainframe_tui import main as tui_main
    typer.echo("🚀 Iniciando Interface Terminal...")
    try:
        tui_main()
    except KeyboardInterrupt:
        typer.echo("\n👋 Saindo do TUI...")
        raise typer.Exit(0)


@app.command("logs")
def cmd_logs(
    tipo: str = typer.Option("transactions", "--tipo", help=" | ".join(LOG_FILES)),
    linhas: int = typer.Option(50, "--linhas", help="Quantidade de linhas"),
):
    """Mostra as últimas linhas de um arquivo de log."""
    console.print(Panel(get_log_summary(tipo, lines=linhas), title=f"Log: {tipo}"))


# -----------------------
# laboratório
# -----------------------

lab_app = typer.Typer(help="Listagem de exames laboratoriais")
app.add_typer(lab_app, name="lab")


def _lab_browser(db_path: str, listener=None) -> LabBrowser:
    return LabBrowser(LabRepo(db_path), PatientRepo(db_path), listener)


@lab_app.command("listar")
def cmd_lab_listar(
    exame: Optional[str] = typer.Option(None, "--exame", help="Descrição do exame"),
    de: Optional[str] = typer.Option(None, "--de", help="Data inicial (DD/MM/AAAA)"),
    ate: Optional[str] = typer.Option(None, "--ate", help="Data final (DD/MM/AAAA)"),
    paciente: str = typer.Option("", "--paciente", help="Código do paciente"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Lista exames; sem filtros, lista todos."""
    browser = _lab_browser(db_path)
    date_from, date_to = _date_opt(de, "--de"), _date_opt(ate, "--ate")
    if exame is None and date_from is None and date_to is None and not paciente.strip():
        rows = browser.list_all()
    else:
        rows = browser.list_filtered(exame, date_from, date_to, paciente)
    if browser.last_error is not None:
        _show_error(browser.last_error)
    _display_labs(rows, extended=SETTINGS.lab_extended or bool(paciente.strip()))


@lab_app.command("excluir")
def cmd_lab_excluir(
    codigo: int = typer.Argument(..., help="Código do resultado"),
    sim: bool = typer.Option(False, "--sim", "-y", help="Não pedir confirmação"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Exclui um resultado de exame."""
    browser = _lab_browser(db_path)
    rows = browser.list_all()
    if browser.last_error is not None:
        _show_error(browser.last_error)
    position = next((i for i, r in enumerate(rows) if r.code == codigo), None)
    record = rows[position] if position is not None else None
    if record is not None and not sim:
        typer.confirm(f"Excluir o exame {record.exam} de {_fmt_date(record.lab_date)}?", abort=True)
    if not browser.delete_record(record, position):
        _show_error(browser.last_error)
    typer.echo(f">> Exame {codigo} excluído.")


# -----------------------
# movimentos de estoque
# -----------------------

mov_app = typer.Typer(help="Movimentos de estoque (cargas e descargas)")
app.add_typer(mov_app, name="mov")


def _find(items, attr: str, value: str, label: str):
    for item in items:
        if str(getattr(item, attr)) == value:
            return Specific(item)
    raise typer.BadParameter(f"{value!r} não encontrado", param_hint=label)


def _movement_type_selection(value: Optional[str], db_path: str):
    if value is None:
        return ALL
    if value == "+":
        return ALL_CHARGES
    if value == "-":
        return ALL_DISCHARGES
    return _find(MovementTypeRepo(db_path).get_all(), "code", value, "--tipo-movimento")


@mov_app.command("listar")
def cmd_mov_listar(
    medicamento: Optional[str] = typer.Option(None, "--medicamento", help="Código do produto"),
    tipo_medicamento: Optional[str] = typer.Option(None, "--tipo-medicamento", help="Código do tipo de medicamento"),
    tipo_movimento: Optional[str] = typer.Option(None, "--tipo-movimento", help="Código do tipo, '+' (cargas) ou '-' (descargas)"),
    setor: Optional[str] = typer.Option(None, "--setor", help="Código do setor (apenas descargas)"),
    de: Optional[str] = typer.Option(None, "--de", help="Movimentação: data inicial"),
    ate: Optional[str] = typer.Option(None, "--ate", help="Movimentação: data final"),
    prep_de: Optional[str] = typer.Option(None, "--prep-de", help="Preparação do lote: data inicial"),
    prep_ate: Optional[str] = typer.Option(None, "--prep-ate", help="Preparação do lote: data final"),
    venc_de: Optional[str] = typer.Option(None, "--venc-de", help="Validade do lote: data inicial"),
    venc_ate: Optional[str] = typer.Option(None, "--venc-ate", help="Validade do lote: data final"),
    todas_datas: bool = typer.Option(False, "--todas-datas", help="Não restringe a data de movimentação"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Lista movimentos; sem datas, usa a última semana."""
    movement = DateRange(_date_opt(de, "--de"), _date_opt(ate, "--ate"))
    if movement.is_empty and not todas_datas:
        movement = last_weeks(date.today(), SETTINGS.default_movement_window_weeks)
    criteria = StockFilterCriteria(
        medical=_find(MedicalRepo(db_path).get_sorted_by_name(), "prod_code", medicamento, "--medicamento") if medicamento else ALL,
        medical_type=_find(MedicalTypeRepo(db_path).get_active(), "code", tipo_medicamento, "--tipo-medicamento") if tipo_medicamento else ALL,
        movement_type=_movement_type_selection(tipo_movimento, db_path),
        ward=_find(WardRepo(db_path).get_sorted(), "code", setor, "--setor") if setor else ALL,
        movement=movement,
        lot_preparation=DateRange(_date_opt(prep_de, "--prep-de"), _date_opt(prep_ate, "--prep-ate")),
        lot_due=DateRange(_date_opt(venc_de, "--venc-de"), _date_opt(venc_ate, "--venc-ate")),
    )
    listener = RecordingListener()
    browser = MovStockBrowser(MovementRepo(db_path), SETTINGS, listener)
    rows = browser.list_movements(criteria)
    if browser.last_error is not None:
        _show_error(browser.last_error)
    _display_movements(rows, browser.totals, show_user=not SETTINGS.single_user)
    console.print(f"[dim]{browser.file_name()}[/dim]")


@mov_app.command("excluir-ultimo")
def cmd_mov_excluir_ultimo(
    codigo: int = typer.Argument(..., help="Código do movimento selecionado"),
    sim: bool = typer.Option(False, "--sim", "-y", help="Não pedir confirmação"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Exclui o movimento informado, desde que seja o último do sistema."""
    repo = MovementRepo(db_path)
    browser = MovStockBrowser(repo, SETTINGS)
    browser.set_movement_dates(None, None)
    rows = browser.list_movements()
    if browser.last_error is not None:
        _show_error(browser.last_error)
    record = next((m for m in rows if m.code == codigo), None)
    if record is not None and not sim:
        typer.confirm(f"Excluir o movimento {codigo} ({record.medical.description})?", abort=True)
    if not browser.delete_last_movement(record):
        _show_error(browser.last_error)
    typer.echo(f">> Movimento {codigo} excluído.")


# -----------------------
# importação
# -----------------------

imp_app = typer.Typer(help="Importar planilhas XLSX")
app.add_typer(imp_app, name="importar")


def _display_import(info: Dict[str, Any], title: str) -> None:
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Campo")
    table.add_column("Valor")
    for key, value in info.items():
        table.add_row(key, str(value))
    console.print(table)


@imp_app.command("labs")
def cmd_importar_labs(
    path: str = typer.Argument(..., help="Caminho do XLSX de resultados"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Importa resultados de laboratório a partir de um XLSX."""
    _display_import(run_import_labs(path, db_path=db_path), "Importação de Exames")


@imp_app.command("movimentos")
def cmd_importar_movimentos(
    path: str = typer.Argument(..., help="Caminho do XLSX de movimentos"),
    db_path: str = typer.Option(DB_PATH, "--db", help="Caminho do SQLite"),
):
    """Importa movimentos de estoque a partir de um XLSX."""
    _display_import(run_import_movements(path, db_path=db_path), "Importação de Movimentos")


# Entry point opcional:
def main():
    app()


if __name__ == "__main__":
    main()
