"""Command line interface for inspecting intake progress."""

from __future__ import annotations

import asyncio
import json
from typing import Optional

import typer

from intakeflow import get_repository, load_config
from intakeflow.steps import STEP_COUNT, STEPS, evaluate_validity

app = typer.Typer(help="CLI for intakeflow sessions")


@app.callback()
def main() -> None:
    """intakeflow CLI entry point."""
    pass


def _session_or_default(session: Optional[str]) -> str:
    return session or load_config().session_id


@app.command("steps")
def list_steps() -> None:
    """List the registered intake steps in order."""
    for step in STEPS:
        draft = "" if step.requires_draft else " (creates draft)"
        typer.echo(f"{step.index + 1}. {step.name}\t{step.title}{draft}")


async def _load_all(repo) -> list:
    """Load every stored snapshot within a single event loop."""
    snapshots = []
    for session_id in await repo.list_sessions():
        snapshots.append((session_id, await repo.load(session_id)))
    return snapshots


@app.command("sessions")
def list_sessions() -> None:
    """
    List sessions with stored progress.

    Example:
        intakeflow sessions
        # Output: default    step 3/10
        #         acme       completed
    """
    repo = get_repository()
    snapshots = asyncio.run(_load_all(repo))
    if not snapshots:
        typer.echo("No sessions found")
        return
    for session_id, snapshot in snapshots:
        if snapshot is None:
            typer.echo(f"{session_id}\tunreadable")
        elif snapshot.completed:
            typer.echo(f"{session_id}\tcompleted")
        else:
            typer.echo(
                f"{session_id}\tstep {snapshot.current_step_index + 1}/{STEP_COUNT}"
            )


@app.command("status")
def status(
    session: Optional[str] = typer.Option(None, help="Session id to inspect"),
) -> None:
    """
    Show where a session stands and which steps are complete.

    Example:
        intakeflow status --session acme
        # Output: Session acme: step 2/10 (Services)
        #         Draft: 3f0c...
        #         [x] register_yourself
        #         [ ] services  <- current
    """
    session_id = _session_or_default(session)
    repo = get_repository()
    snapshot = asyncio.run(repo.load(session_id))
    if snapshot is None:
        typer.echo("Session not found")
        raise typer.Exit(code=1)

    current = STEPS[snapshot.current_step_index]
    if snapshot.completed:
        typer.echo(f"Session {session_id}: completed")
    else:
        typer.echo(
            f"Session {session_id}: step {current.index + 1}/{STEP_COUNT} ({current.title})"
        )
    typer.echo(f"Draft: {snapshot.draft_id or '(none)'}")
    if snapshot.conflict_email:
        typer.echo(f"Blocked: {snapshot.conflict_email} is already a client")
    for step, valid in zip(STEPS, evaluate_validity(snapshot.answers)):
        marker = "x" if valid else " "
        pointer = "  <- current" if step is current and not snapshot.completed else ""
        typer.echo(f"[{marker}] {step.name}{pointer}")


@app.command("show")
def show(
    session: Optional[str] = typer.Option(None, help="Session id to inspect"),
) -> None:
    """Print the stored answers of a session as JSON."""
    session_id = _session_or_default(session)
    repo = get_repository()
    snapshot = asyncio.run(repo.load(session_id))
    if snapshot is None:
        typer.echo("Session not found")
        raise typer.Exit(code=1)
    typer.echo(json.dumps(snapshot.answers.model_dump(mode="json"), indent=2))


@app.command("reset")
def reset(
    session: Optional[str] = typer.Option(None, help="Session id to clear"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """
    Discard the stored progress of a session.

    The remote draft is left untouched; the next run starts from step one.
    """
    session_id = _session_or_default(session)
    if not yes:
        typer.confirm(f"Clear stored progress for session {session_id}?", abort=True)
    repo = get_repository()
    asyncio.run(repo.clear(session_id))
    typer.echo(f"Progress for session {session_id} cleared")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
