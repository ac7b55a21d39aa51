"""cadence CLI — review commands, statistics and maintenance."""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError

from cadence.application.config import AppConfig, resolve_config
from cadence.application.factory import get_card_store
from cadence.application.recovery import audit_store, repair_store
from cadence.application.service import FlashcardService
from cadence.application.stats.metrics_calculator import CardFilter, MetricsCalculator
from cadence.domain.errors import CadenceError, InvalidGrade, NothingToUndo
from cadence.domain.models import CardSnapshot, GradeResult, HistorySummary

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="cadence: spaced-repetition flashcards in the terminal.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage cadence configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

_LEVELS = {0: logging.WARNING, 1: logging.INFO}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _config(ctx: typer.Context) -> AppConfig:
    return ctx.obj["config"]


def _service(ctx: typer.Context) -> FlashcardService:
    if "service" not in ctx.obj:
        config = _config(ctx)
        ctx.obj["service"] = FlashcardService(
            get_card_store(config), params=config.scheduler_params()
        )
    return ctx.obj["service"]


def _fail(err: CadenceError) -> typer.Exit:
    typer.secho(f"Error: {err}", fg="red", err=True)
    return typer.Exit(1)


def _fmt_time(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "never"


def _snapshot_dict(snapshot: CardSnapshot) -> dict[str, Any]:
    card, state = snapshot.card, snapshot.state
    return {
        "id": card.id,
        "deck": card.deck,
        "front": card.front,
        "back": card.back,
        "card_type": card.card_type.value,
        "tags": list(card.tags),
        "stage": state.stage.value,
        "repetitions": state.repetitions,
        "ease_factor": round(state.ease_factor, 4),
        "interval_days": state.interval_days,
        "due_at": state.due_at.isoformat(),
        "last_reviewed_at": (
            state.last_reviewed_at.isoformat() if state.last_reviewed_at else None
        ),
    }


def _grade_dict(result: GradeResult) -> dict[str, Any]:
    return {
        "card_id": result.card_id,
        "record_id": result.record.id,
        "quality": result.record.quality,
        "stage_before": result.record.stage_before.value,
        "stage": result.state.stage.value,
        "interval_days": result.interval_days,
        "ease_factor": round(result.state.ease_factor, 4),
        "due_at": result.due_at.isoformat(),
    }


def _history_dict(summary: HistorySummary) -> dict[str, Any]:
    return {
        "card_id": summary.card_id,
        "review_count": summary.review_count,
        "lapse_count": summary.lapse_count,
        "retention_rate": summary.retention_rate,
        "average_quality": summary.average_quality,
        "last_reviewed_at": (
            summary.last_reviewed_at.isoformat() if summary.last_reviewed_at else None
        ),
        "records": [
            {
                "id": r.id,
                "reviewed_at": r.reviewed_at.isoformat(),
                "quality": r.quality,
                "stage_before": r.stage_before.value,
                "interval_after": r.interval_after,
            }
            for r in summary.records
        ],
    }


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
    db: Annotated[Path | None, typer.Option("--db", help="Path to the card database.")] = None,
    backend: Annotated[
        str | None, typer.Option(help="Storage backend: sqlite or memory.")
    ] = None,
):
    """Global settings for cadence."""
    ctx.ensure_object(dict)
    try:
        config = resolve_config({"db_path": db, "backend": backend, "verbose": verbose or None})
    except ValidationError as e:
        typer.secho(f"Error: invalid configuration\n{e}", fg="red", err=True)
        raise typer.Exit(1)
    logging.getLogger().setLevel(_LEVELS.get(config.verbose, logging.DEBUG))
    ctx.obj["config"] = config


# ---------------------------------------------------------------------------
# Card commands
# ---------------------------------------------------------------------------


@app.command()
def add(
    ctx: typer.Context,
    front: Annotated[str, typer.Argument(help="Prompt side of the card.")],
    back: Annotated[str, typer.Argument(help="Answer side of the card.")],
    deck: Annotated[str, typer.Option(help="Deck / category.")] = "Default",
    card_type: Annotated[
        str, typer.Option("--type", help="basic, cloze, or mc.")
    ] = "basic",
    tag: Annotated[list[str] | None, typer.Option("--tag", help="Tag (repeatable).")] = None,
):
    """[bold green]Add[/bold green] a new card, due immediately."""
    try:
        snapshot = _service(ctx).add_card(
            front, back, _now(), deck=deck, card_type=card_type, tags=tag or ()
        )
    except ValueError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(2)
    except CadenceError as e:
        raise _fail(e)
    typer.echo(snapshot.card.id)


@app.command()
def due(
    ctx: typer.Context,
    deck: Annotated[str | None, typer.Option(help="Filter by deck name.")] = None,
    limit: Annotated[int | None, typer.Option(help="Show at most this many cards.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List cards due now, most overdue first."""
    try:
        cards = _service(ctx).due(_now(), deck)
    except CadenceError as e:
        raise _fail(e)
    if limit is not None:
        cards = cards[:limit]

    if json_output:
        typer.echo(json.dumps([_snapshot_dict(s) for s in cards], indent=2))
        return

    if not cards:
        typer.secho("No cards due.", fg="green")
        return
    for s in cards:
        typer.echo(
            f"{s.card.id}  [{s.state.stage.value:<10}] {s.card.deck}: {s.card.front}"
        )


@app.command()
def grade(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card to grade.")],
    quality: Annotated[int, typer.Argument(help="Recall quality, 0 (blackout) to 5 (perfect).")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Grade one card and show its next review date."""
    try:
        result = _service(ctx).grade(card_id, quality, _now())
    except CadenceError as e:
        raise _fail(e)

    if json_output:
        typer.echo(json.dumps(_grade_dict(result), indent=2))
    else:
        typer.echo(
            f"{result.card_id}: {result.state.stage.value}, next review in "
            f"{result.interval_days}d ({_fmt_time(result.due_at)})"
        )


@app.command()
def review(
    ctx: typer.Context,
    deck: Annotated[str | None, typer.Option(help="Filter by deck name.")] = None,
):
    """Review due cards one by one. Enter a grade, 'u' to undo, 'q' to quit."""
    session = _service(ctx).session()
    try:
        total = session.start(_now(), deck)
    except CadenceError as e:
        raise _fail(e)
    if total == 0:
        typer.secho("No cards due.", fg="green")
        return

    while True:
        snapshot = session.current()
        if snapshot is None:
            if not session.can_undo:
                break
            answer = typer.prompt(
                "Grade done (u=undo, q=quit)", default="q", show_default=False
            ).strip().lower()
            if answer != "u":
                break
            try:
                restored = session.undo_last()
            except CadenceError as e:
                raise _fail(e)
            typer.secho(f"Undid grade of {restored.card.id}", fg="yellow")
            continue

        typer.secho(f"\n[{session.remaining} left] {snapshot.card.deck}", fg="cyan")
        typer.echo(snapshot.card.front)
        typer.prompt("Show answer", default="", show_default=False)
        typer.echo(snapshot.card.back)

        answer = typer.prompt("Grade 0-5 (u=undo, q=quit)").strip().lower()
        if answer == "q":
            break
        try:
            if answer == "u":
                restored = session.undo_last()
                typer.secho(f"Undid grade of {restored.card.id}", fg="yellow")
                continue
            result = session.grade(int(answer))
        except (ValueError, InvalidGrade, NothingToUndo) as e:
            typer.secho(str(e), fg="yellow")
            continue
        except CadenceError as e:
            raise _fail(e)
        typer.echo(f"Next review in {result.interval_days}d ({_fmt_time(result.due_at)})")

    typer.secho(f"Reviewed {session.reviewed} of {total} cards.", fg="green")


@app.command()
def history(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card to inspect.")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show a card's review history."""
    try:
        summary = _service(ctx).history(card_id)
    except CadenceError as e:
        raise _fail(e)

    if json_output:
        typer.echo(json.dumps(_history_dict(summary), indent=2))
        return

    typer.echo(
        f"Reviewed {summary.review_count} times, "
        f"last on {_fmt_time(summary.last_reviewed_at)}"
    )
    if summary.retention_rate is not None:
        typer.echo(
            f"Lapses: {summary.lapse_count}  Retention: {summary.retention_rate:.0%}  "
            f"Avg quality: {summary.average_quality:.1f}"
        )
    for r in summary.records:
        typer.echo(
            f"  {_fmt_time(r.reviewed_at)}  q={r.quality}  "
            f"{r.stage_before.value} -> {r.interval_after}d"
        )


@app.command()
def stats(
    ctx: typer.Context,
    deck: Annotated[str | None, typer.Option(help="Filter by deck name.")] = None,
    card_filter: Annotated[
        CardFilter | None, typer.Option("--filter", help="List the cards matching a filter.")
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show card counts per filter (new, due, ease bands, mastered)."""
    service = _service(ctx)
    calc = MetricsCalculator(passing_grade=_config(ctx).passing_grade)
    now = _now()
    try:
        snapshots = service.store.list_snapshots(deck)
    except CadenceError as e:
        raise _fail(e)

    if card_filter is not None:
        matching = calc.filter_cards(snapshots, card_filter, now)
        if json_output:
            typer.echo(json.dumps([_snapshot_dict(s) for s in matching], indent=2))
        else:
            typer.echo(f"{card_filter.value.capitalize()}: {len(matching)}")
            for s in matching:
                typer.echo(f"  {s.card.id}  {s.card.front}")
        return

    summary = calc.deck_summary(snapshots, now, deck)
    if json_output:
        typer.echo(
            json.dumps(
                {
                    "deck": summary.deck,
                    "total": summary.total,
                    "counts": {f.value: n for f, n in summary.counts.items()},
                },
                indent=2,
            )
        )
        return

    typer.echo(summary.headline())
    for f, n in summary.counts.items():
        if f is not CardFilter.ALL:
            typer.echo(f"  {f.value:<9} {n}")


@app.command()
def decks(ctx: typer.Context):
    """List deck names."""
    try:
        names = _service(ctx).store.decks()
    except CadenceError as e:
        raise _fail(e)
    for name in names:
        typer.echo(name)


@app.command()
def doctor(
    ctx: typer.Context,
    deck: Annotated[str | None, typer.Option(help="Only check one deck.")] = None,
    repair: Annotated[
        bool, typer.Option("--repair", help="Rewrite drifted states from review history.")
    ] = False,
):
    """Check cached scheduling state against a replay of the review history."""
    service = _service(ctx)
    params = _config(ctx).scheduler_params()
    try:
        drifts = audit_store(service.store, deck, params)
        if not drifts:
            typer.secho("All scheduling states match their history.", fg="green")
            return

        typer.secho(f"Drifted states: {len(drifts)}", fg="yellow")
        for d in drifts:
            typer.echo(
                f"  {d.card_id}: stored {d.stored.stage.value}/{d.stored.interval_days}d, "
                f"replayed {d.replayed.stage.value}/{d.replayed.interval_days}d"
            )
        if not repair:
            raise typer.Exit(1)

        repaired = repair_store(service.store, drifts)
    except CadenceError as e:
        raise _fail(e)
    typer.secho(f"Repaired {repaired} cards.", fg="green")


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _config(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    d["database"] = str(config.database)
    typer.echo(json.dumps(d, indent=2))
