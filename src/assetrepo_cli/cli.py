from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path
from typing import Any, Literal

import typer
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from assetrepo import (
    AssetInfo,
    AssetInfoPatch,
    Outcome,
    Repository,
    RepositoryConfig,
    __version__,
    build_repository,
    load_config,
)
from assetrepo.config import LoggingConfig
from assetrepo.errors import ErrorKind
from assetrepo.observability import configure_logging

app = typer.Typer(help="Asset repository CLI")

ReplayOp = Literal["mkdir", "put", "update", "cat", "ls", "info", "find", "rm", "rmdir", "checkout"]


class ReplayStep(BaseModel):
    model_config = ConfigDict(extra="forbid")

    op: ReplayOp
    path: str | None = None
    content: str = ""
    term: str | None = None
    regex: bool = False
    checked_out: bool = True
    by: str = ""
    expect: str | None = Field(default=None, description="Expected error kind, if any.")

    @model_validator(mode="after")
    def validate_step_arguments(self) -> ReplayStep:
        if self.op == "find":
            if not self.term:
                raise ValueError("find requires term")
        elif not self.path:
            raise ValueError(f"{self.op} requires path")
        if self.expect is not None and self.expect not in {kind.value for kind in ErrorKind}:
            raise ValueError(f"unknown error kind: {self.expect}")
        return self


@app.callback()
def configure(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log repository operations at debug level.",
    ),
) -> None:
    """Asset repository CLI."""
    configure_logging(LoggingConfig(enabled=True, level="DEBUG") if verbose else None)


@app.command()
def version() -> None:
    """Print the installed assetrepo version."""
    typer.echo(f"assetrepo {__version__}")


@app.command()
def smoke() -> None:
    """Run the directory/asset round trip against a fresh in-memory repository."""
    failures = asyncio.run(_run_smoke(build_repository()))
    if failures:
        for failure in failures:
            typer.echo(failure, err=True)
        raise typer.Exit(code=1)
    typer.echo("repository ok")


@app.command()
def replay(
    script: Path = typer.Option(
        ...,
        "--script",
        help="JSON file with a list of repository operations.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        help="Config file path.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Exit with code 1 when any step fails unexpectedly.",
    ),
) -> None:
    """Replay scripted operations and print one line per step."""
    try:
        config = load_config(config_path) if config_path else RepositoryConfig()
        steps = _load_script(script)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    if config_path:
        configure_logging(config.logging)
    repository = build_repository(config)

    lines, failed = asyncio.run(_replay(repository, steps))
    for line in lines:
        typer.echo(line)
    typer.echo(f"steps={len(steps)} failed={failed}")
    if strict and failed:
        raise typer.Exit(code=1)


@app.command("config-check")
def config_check(
    config_path: Path = typer.Option(
        Path("config/config.example.yaml"),
        "--config",
        help="Config file path.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """Validate a repository config file."""
    try:
        config = load_config(config_path)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(
        f"backend={config.store.backend} delay_ms={config.store.delay_ms} "
        f"window_ms={config.progress.window_ms} logging={config.logging.enabled}"
    )


def _load_script(path: Path) -> list[ReplayStep]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid replay script: {exc}") from exc
    if not isinstance(payload, list):
        raise ValueError("Replay script root must be a list.")
    try:
        return [ReplayStep.model_validate(item) for item in payload]
    except ValidationError as exc:
        raise ValueError(f"Invalid replay script: {exc}") from exc


async def _replay(repository: Repository, steps: list[ReplayStep]) -> tuple[list[str], int]:
    lines: list[str] = []
    failed = 0
    for index, step in enumerate(steps, start=1):
        outcome = await _run_step(repository, step)
        target = step.path if step.path is not None else step.term
        prefix = f"step={index} op={step.op} target={target}"
        if outcome.error is not None:
            expected = step.expect == outcome.error.kind
            if not expected:
                failed += 1
            status = "expected" if expected else "error"
            lines.append(f"{prefix} {status}={outcome.error.kind} message={outcome.error.message}")
            continue
        if step.expect is not None:
            failed += 1
            lines.append(f"{prefix} error=missing expected {step.expect}")
            continue
        lines.append(f"{prefix} ok {_describe(outcome.value)}".rstrip())
    return lines, failed


async def _run_step(repository: Repository, step: ReplayStep) -> Outcome[Any]:
    path = step.path or ""
    outcome: Outcome[Any] | None
    if step.op == "mkdir":
        outcome = await repository.create_directory(path)
    elif step.op == "rmdir":
        outcome = await repository.delete_directory(path)
    elif step.op == "put":
        outcome = await repository.create_asset(path, step.content.encode("utf-8"))
    elif step.op == "update":
        outcome = await repository.update_asset(path, step.content.encode("utf-8"))
    elif step.op == "rm":
        outcome = await repository.delete_asset(path)
    elif step.op == "ls":
        outcome = await repository.list(path)
    elif step.op == "info":
        outcome = await repository.get_info(path)
    elif step.op == "checkout":
        patch = AssetInfoPatch(checked_out=step.checked_out, checked_out_by=step.by)
        outcome = await repository.update_asset_info(path, patch)
    elif step.op == "find":
        term: str | re.Pattern[str] = re.compile(step.term) if step.regex else step.term or ""
        outcome = await repository.find_assets(term)
    else:
        outcome = await _read_text(repository, path)
    return _delivered(outcome, path)


async def _read_text(repository: Repository, path: str) -> Outcome[str]:
    opened = _delivered(await repository.get_asset(path), path)
    if not opened.ok:
        return Outcome(error=opened.error)
    content = await opened.value.read_all()
    if not content.ok:
        return Outcome(error=content.error)
    return Outcome.success(content.value.decode("utf-8", errors="replace"))


def _delivered(outcome: Outcome[Any] | None, path: str) -> Outcome[Any]:
    if outcome is None:
        return Outcome.failure(ErrorKind.INVALID_ARGUMENT, "result was not delivered", path=path)
    return outcome


def _describe(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return "" if value is None else f"value={str(value).lower()}"
    if isinstance(value, str):
        return f"content={value!r}"
    if isinstance(value, list):
        return "entries=" + ",".join(sorted(item.name for item in value))
    if isinstance(value, AssetInfo):
        return (
            f"name={value.name} type={value.type} size={value.size} "
            f"checked_out={str(value.checked_out).lower()}"
        )
    return f"name={value.name} type={value.type}"


async def _run_smoke(repository: Repository) -> list[str]:
    failures: list[str] = []

    def check(label: str, outcome: Outcome[Any] | None) -> Outcome[Any] | None:
        if outcome is None or not outcome.ok:
            failures.append(f"{label} failed: {outcome.error if outcome else 'suppressed'}")
            return None
        return outcome

    check("create_directory", await repository.create_directory("/a"))
    check("create_asset", await repository.create_asset("/a/b.txt", b"hi"))
    listed = check("list", await repository.list("/a"))
    if listed is not None and [item.name for item in listed.value] != ["b.txt"]:
        failures.append(f"list returned {[item.name for item in listed.value]}")
    content = await _read_text(repository, "/a/b.txt")
    if not content.ok or content.value != "hi":
        failures.append(f"get_asset returned {content.value if content.ok else content.error}")
    check("delete_asset", await repository.delete_asset("/a/b.txt"))
    exists = check("exists", await repository.exists("/a/b.txt"))
    if exists is not None and exists.value:
        failures.append("deleted asset still exists")
    check("delete_directory", await repository.delete_directory("/a"))
    return failures


def main() -> None:
    app()


if __name__ == "__main__":
    main()
