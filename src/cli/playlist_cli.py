"""
Playlist CLI - drive a playlist engine from the terminal.

Works on two JSON files: a module catalog (as the content service returns
it) and a session blob (as the hosting application would store it).

Usage:
    playlist init --catalog module.json --session session.json --enrollment enr-1
    playlist show --catalog module.json --session session.json
    playlist next --catalog module.json --session session.json --apply
    playlist gate gate-1 --catalog module.json --session session.json -q n1=0 -q n1=1 -q n2=0
    playlist progress n1 --mastery 0.85 --catalog module.json --session session.json
    playlist goto 0 --catalog module.json --session session.json
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from src.playlist import (
    AdaptiveMode,
    CourseAdaptiveSettings,
    GateDisplayStatus,
    NodeProgress,
    PlaylistEngine,
    PlaylistError,
    QuestionOutcome,
    StrategyTuning,
    decision_to_dict,
    next_attempt_number,
    score_gate_challenge,
    session_from_json,
    session_to_json,
)
from src.playlist.catalog import ModuleCatalog, load_catalog
from src.playlist.strategies.base import gate_config_for

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="playlist",
    help="Adaptive playlist engine - inspect and step through a module playlist",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

CatalogOption = Annotated[
    Path, typer.Option("--catalog", "-c", help="Module catalog JSON file")
]
SessionOption = Annotated[
    Path, typer.Option("--session", "-s", help="Session JSON file")
]
ModeOption = Annotated[
    Optional[AdaptiveMode],
    typer.Option("--mode", "-m", help="Override the course's adaptive mode"),
]

GATE_STYLES = {
    GateDisplayStatus.PENDING: "yellow",
    GateDisplayStatus.PASSED: "green",
    GateDisplayStatus.FAILED: "red",
}

ANSWER_MARKS = {"1": True, "0": False}


def _fail(message: str) -> NoReturn:
    console.print(f"[red]✗ {message}[/]")
    raise typer.Exit(1)


def _read_catalog(path: Path) -> ModuleCatalog:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return load_catalog(data)
    except (OSError, json.JSONDecodeError) as e:
        _fail(f"Cannot read catalog {path}: {e}")
    except ValidationError as e:
        _fail(f"Invalid catalog {path}:\n{e}")


def _build_engine(
    catalog: ModuleCatalog,
    enrollment_id: str,
    module_id: str,
    mode: Optional[AdaptiveMode],
) -> PlaylistEngine:
    settings = catalog.to_settings()
    if mode is not None:
        base = settings or CourseAdaptiveSettings()
        settings = CourseAdaptiveSettings(
            mode=mode,
            allow_learner_choice=base.allow_learner_choice,
            pre_assessment_enabled=base.pre_assessment_enabled,
        )
    return PlaylistEngine(settings, catalog.to_units(), enrollment_id, module_id)


def _load_engine(
    catalog_path: Path,
    session_path: Path,
    mode: Optional[AdaptiveMode],
) -> PlaylistEngine:
    """Build an engine from the catalog and restore the saved session into it."""
    catalog = _read_catalog(catalog_path)
    try:
        session = session_from_json(session_path.read_text(encoding="utf-8"))
        engine = _build_engine(catalog, session.enrollment_id, session.module_id, mode)
        engine.restore_session(session)
    except OSError as e:
        _fail(f"Cannot read session {session_path}: {e}")
    except PlaylistError as e:
        _fail(str(e))
    return engine


def _save(engine: PlaylistEngine, session_path: Path) -> None:
    session_path.write_text(session_to_json(engine.get_session()), encoding="utf-8")
    logger.debug(f"Saved session to {session_path}")


def _print_playlist(engine: PlaylistEngine) -> None:
    session = engine.get_session()
    table = Table(title=f"Module {session.module_id} · {engine.config.mode.value} mode")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Entry")
    table.add_column("Kind", style="cyan")
    table.add_column("Status")
    table.add_column("Gate")

    for index, row in enumerate(engine.get_display_entries()):
        if row.is_current and not session.is_complete:
            status = "[bold cyan]▶ current[/]"
        elif row.is_skipped:
            status = "[dim]skipped[/]"
        elif row.is_completed:
            status = "[green]✓ done[/]"
        else:
            status = ""
        gate = ""
        if row.gate_status is not None:
            gate = f"[{GATE_STYLES[row.gate_status]}]{row.gate_status.value}[/]"
        table.add_row(str(index), row.title, row.kind.value, status, gate)

    console.print(table)
    if session.is_complete:
        console.print("[green]Module playlist complete 🎉[/]")


# =============================================================================
# Commands
# =============================================================================


@app.command()
def init(
    catalog: CatalogOption,
    session: SessionOption,
    enrollment: Annotated[str, typer.Option("--enrollment", "-e", help="Enrollment id")],
    module: Annotated[
        Optional[str], typer.Option("--module", help="Module id (defaults to the catalog's)")
    ] = None,
    mode: ModeOption = None,
) -> None:
    """Create a fresh session from the catalog's unit sequence."""
    module_catalog = _read_catalog(catalog)
    module_id = module or module_catalog.module_id
    if not module_id:
        _fail("No module id: pass --module or set moduleId in the catalog")

    engine = _build_engine(module_catalog, enrollment, module_id, mode)
    engine.initialize_playlist()
    _save(engine, session)
    console.print(f"[green]✓ Session written to {session}[/]")
    _print_playlist(engine)


@app.command()
def show(catalog: CatalogOption, session: SessionOption, mode: ModeOption = None) -> None:
    """Show the playlist with progress and gate status."""
    engine = _load_engine(catalog, session, mode)
    _print_playlist(engine)


@app.command("next")
def next_(
    catalog: CatalogOption,
    session: SessionOption,
    mode: ModeOption = None,
    apply: Annotated[
        bool, typer.Option("--apply", "-a", help="Apply the decision and save the session")
    ] = False,
) -> None:
    """Resolve the next decision; optionally apply it."""
    engine = _load_engine(catalog, session, mode)
    decision = engine.resolve_next()

    console.print(Panel(
        json.dumps(decision_to_dict(decision), indent=2),
        title=f"Decision: {decision.action.value}",
        border_style="cyan",
    ))

    if apply:
        engine.apply_decision(decision)
        _save(engine, session)
        _print_playlist(engine)


@app.command()
def gate(
    lu_id: Annotated[str, typer.Argument(help="Gate unit id")],
    catalog: CatalogOption,
    session: SessionOption,
    answer: Annotated[
        Optional[list[str]],
        typer.Option("--answer", "-q", help="One answered question as NODE=1 (correct) or NODE=0"),
    ] = None,
) -> None:
    """Score a gate challenge from its answers and record the result."""
    engine = _load_engine(catalog, session, None)

    unit = next((lu for lu in engine.static_sequence if lu.id == lu_id), None)
    if unit is None or not unit.is_gate:
        _fail(f"{lu_id} is not a gate unit of this module")

    outcomes = []
    for number, raw in enumerate(answer or (), start=1):
        node_id, _, mark = raw.partition("=")
        if not node_id or mark not in ANSWER_MARKS:
            _fail(f"Invalid answer {raw!r}: expected NODE=1 or NODE=0")
        outcomes.append(QuestionOutcome(
            question_id=f"q{number}",
            node_id=node_id,
            is_correct=ANSWER_MARKS[mark],
        ))

    tuning = StrategyTuning.from_settings(get_settings())
    result = score_gate_challenge(
        lu_id,
        outcomes,
        gate_config_for(unit, tuning),
        next_attempt_number(engine.get_session(), lu_id),
        assesses_nodes=unit.assesses_nodes,
    )
    engine.record_gate_result(result)
    _save(engine, session)

    outcome = "[green]passed[/]" if result.passed else "[red]failed[/]"
    console.print(f"Gate {lu_id} attempt {result.attempt_number}: {outcome} ({result.score:.0%})")
    if result.failed_nodes:
        console.print(f"[yellow]Below threshold: {', '.join(result.failed_nodes)}[/]")


@app.command()
def progress(
    node_id: Annotated[str, typer.Argument(help="Knowledge node id")],
    catalog: CatalogOption,
    session: SessionOption,
    mastery: Annotated[float, typer.Option("--mastery", min=0.0, max=1.0, help="Mastery (0-1)")],
    attempts: Annotated[int, typer.Option("--attempts", min=0, help="Attempt count")] = 0,
) -> None:
    """Set the mastery of a knowledge node."""
    engine = _load_engine(catalog, session, None)
    engine.update_node_progress(node_id, NodeProgress(mastery=mastery, attempts=attempts))
    _save(engine, session)
    console.print(f"Node {node_id}: mastery {mastery:.0%}")


@app.command()
def goto(
    index: Annotated[int, typer.Argument(help="Playlist index to jump to")],
    catalog: CatalogOption,
    session: SessionOption,
) -> None:
    """Jump to a playlist entry."""
    engine = _load_engine(catalog, session, None)
    before = engine.get_session().current_index
    engine.go_to_index(index)
    if engine.get_session().current_index == before and index != before:
        console.print(f"[yellow]⚠ Index {index} is out of range, nothing changed[/]")
    _save(engine, session)
    _print_playlist(engine)


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=get_settings().log_level.upper(),
        format="<level>{message}</level>",
    )

    app()


if __name__ == "__main__":
    main()
