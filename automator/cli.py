# automator/cli.py
from __future__ import annotations

"""Command-line interface
------------------------
Convenience commands to expand/list/validate/run action sequences and view
effective config. Thin wrapper around the loader and the engine.
"""

import asyncio
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

import click
from playwright.async_api import async_playwright

from automator.core.engine import Automator
from automator.core.expander import expand_actions
from automator.core.keyboard import KEY_CODES, PLAYWRIGHT_KEYS, KeyboardHandler, LoggingKeyboard, PlaywrightKeyboard
from automator.core.options import AutomatorOptions
from automator.core.sequence_loader import Sequence, find_sequence_files, load_sequences_file
from automator.utils.config import Settings, get_settings
from automator.utils.logger import (
    attach_file_logger,
    bind,
    detach_file_logger,
    get_logger,
    set_log_level,
    unbind,
)
from automator.utils.timing import Stopwatch


# -------- helpers --------


def _echo_json(obj) -> None:
    click.echo(json.dumps(obj, indent=2, ensure_ascii=False, default=str))


def _coerce_token(raw: str) -> Any:
    """Command-line tokens: integers and floats become delays, 'null' is a null action."""
    if raw == "null":
        return None
    for conv in (int, float):
        try:
            return conv(raw)
        except ValueError:
            continue
    return raw


def _collect(targets: List[str], sequences_dir: Optional[str], recursive: bool) -> list[Path]:
    paths: list[Path] = []
    if targets:
        for p in (Path(t).resolve() for t in targets):
            if p.is_dir():
                paths.extend(find_sequence_files(p, recursive=True))
            else:
                paths.append(p)
    elif sequences_dir:
        paths.extend(find_sequence_files(Path(sequences_dir), recursive=recursive))
    return paths


async def _until_settled(handle: asyncio.Future) -> Any:
    """Await a run's completion handle, failing fast if a resumed step raises.

    Faults after the first suspension surface through the loop's exception
    handler rather than the handle, so they are captured here.
    """
    loop = asyncio.get_running_loop()
    failure: asyncio.Future = loop.create_future()

    def on_loop_error(lp: asyncio.AbstractEventLoop, context: dict) -> None:
        exc = context.get("exception")
        if exc is not None and not failure.done():
            failure.set_exception(exc)
        else:
            lp.default_exception_handler(context)

    loop.set_exception_handler(on_loop_error)
    try:
        done, _ = await asyncio.wait({handle, failure}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        loop.set_exception_handler(None)
    if failure in done:
        failure.result()
    return handle.result()


async def _run_sequence(
    seq: Sequence,
    settings: Settings,
    *,
    iterations: Optional[int],
    step_delay: Optional[int],
    iteration_delay: Optional[int],
    debug: Optional[bool],
    url: Optional[str],
) -> dict:
    log = get_logger(__name__)
    target_url = url or seq.url
    completed: list[int] = []

    def on_iteration(idx: int) -> int:
        completed.append(idx)
        return idx

    def make_options(do_string) -> AutomatorOptions:
        return AutomatorOptions.from_settings(
            settings,
            debug=debug,
            step_delay=step_delay if step_delay is not None else seq.step_delay_ms,
            iteration_delay=iteration_delay if iteration_delay is not None else seq.iteration_delay_ms,
            do_string=do_string,
        )

    num = iterations or seq.iterations or settings.DEFAULT_ITERATIONS
    with Stopwatch() as sw:
        if target_url:
            async with async_playwright() as p:
                browser_type = getattr(p, settings.BROWSER_TYPE.value)
                browser = await browser_type.launch(**settings.playwright_launch_kwargs())
                try:
                    context = await browser.new_context(**settings.playwright_context_kwargs())
                    page = await context.new_page()
                    await page.goto(target_url, wait_until="domcontentloaded", timeout=settings.PAGE_LOAD_TIMEOUT)
                    log.info(f"Driving key tokens into {target_url}")
                    automator = Automator(make_options(KeyboardHandler(PlaywrightKeyboard(page))))
                    await _until_settled(automator.automate(seq.actions, num, on_iteration))
                finally:
                    await browser.close()
            keys_sent = None
        else:
            keyboard = LoggingKeyboard()
            automator = Automator(make_options(KeyboardHandler(keyboard)))
            await _until_settled(automator.automate(seq.actions, num, on_iteration))
            keys_sent = [e.token for e in keyboard.events]

    return {
        "ok": True,
        "sequence": seq.name,
        "iterations": len(completed),
        "keys": keys_sent,
        "elapsed_ms": sw.elapsed_ms(),
        "elapsed": sw.human(),
    }


# -------- CLI root --------


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override LOG_LEVEL from settings",
)
@click.version_option(package_name="automator")
def cli(log_level: Optional[str]):
    _ = get_settings()
    if log_level:
        set_log_level(log_level.upper())


# -------- commands --------


@cli.command("config")
def cmd_config():
    """Print effective configuration (after .env & env vars)."""
    s = get_settings()
    _echo_json(s.model_dump(mode="json"))


@cli.command("keys")
def cmd_keys():
    """Print the key token table (token, key code, browser key)."""
    for token, code in KEY_CODES.items():
        click.echo(f"{token:<6} {code:>3}  {PLAYWRIGHT_KEYS[token]}")


@cli.command("expand")
@click.argument("tokens", nargs=-1, required=True)
def cmd_expand(tokens: List[str]):
    """
    Expand repeat tokens and print the resulting action list as JSON.

    Example:
      automator expand tabx3 500 enter
    """
    _echo_json(expand_actions([_coerce_token(t) for t in tokens]))


@cli.command("list")
@click.option(
    "--dir", "sequences_dir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=lambda: str(get_settings().SEQUENCES_DIR),
    help="Directory containing sequence YAML files",
)
@click.option("--recursive/--no-recursive", default=True, show_default=True)
def cmd_list(sequences_dir: str, recursive: bool):
    """List sequences available in a directory."""
    rows = []
    for fp in find_sequence_files(Path(sequences_dir), recursive=recursive):
        try:
            rows.extend((fp, seq) for seq in load_sequences_file(fp))
        except (ValueError, OSError):
            # invalid files are reported by `validate`
            continue

    if not rows:
        click.echo("No sequences found.")
        return

    default_iterations = get_settings().DEFAULT_ITERATIONS
    click.echo(f"Found {len(rows)} sequence(s):\n")
    for fp, seq in rows:
        click.echo(f" - {seq.name}  ({len(seq.expanded())} actions x {seq.iterations or default_iterations})  <- {fp}")


@cli.command("validate")
@click.argument("targets", nargs=-1, required=False)
@click.option("--dir", "sequences_dir", type=click.Path(file_okay=False, dir_okay=True, exists=True), help="Validate all sequences under this directory")
@click.option("--recursive/--no-recursive", default=True, show_default=True)
def cmd_validate(targets: List[str], sequences_dir: Optional[str], recursive: bool):
    """Validate sequence files (supports multi-doc YAML)."""
    paths = _collect(targets, sequences_dir, recursive)
    if not paths:
        click.echo("Provide file(s) or --dir to validate.")
        sys.exit(2)

    ok = True
    for fp in paths:
        try:
            for seq in load_sequences_file(fp):
                click.echo(f"OK  {fp}  ->  {seq.name} ({len(seq.expanded())} actions)")
        except (ValueError, OSError) as e:
            ok = False
            click.echo(f"ERR {fp}  ->  {e}")

    sys.exit(0 if ok else 1)


@cli.command("run")
@click.argument("targets", nargs=-1, required=False)
@click.option("--dir", "sequences_dir", type=click.Path(file_okay=False, dir_okay=True, exists=True),
              help="Run all sequences found under this directory")
@click.option("--recursive/--no-recursive", default=True, show_default=True)
@click.option("--iterations", type=click.IntRange(min=1), default=None, help="Override the iteration count")
@click.option("--step-delay", type=click.IntRange(min=0), default=None, help="Override STEP_DELAY_MS (ms)")
@click.option("--iteration-delay", type=click.IntRange(min=0), default=None, help="Override ITERATION_DELAY_MS (ms)")
@click.option("--debug/--no-debug", default=None, help="Override DEBUG_MODE (trace every transition)")
@click.option("--url", type=str, default=None, help="Press key tokens on this page in a Playwright browser")
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Also write JSON logs to this file")
@click.option("--json-out", type=click.Path(dir_okay=False), default=None, help="Write a JSON summary to this file")
def cmd_run(
    targets: List[str],
    sequences_dir: Optional[str],
    recursive: bool,
    iterations: Optional[int],
    step_delay: Optional[int],
    iteration_delay: Optional[int],
    debug: Optional[bool],
    url: Optional[str],
    log_file: Optional[str],
    json_out: Optional[str],
):
    """
    Run one or more sequence files.

    Examples:
      automator run sequences/konami.yaml
      automator run sequences/search.yaml --url https://example.com --step-delay 100
    """
    settings = get_settings()
    paths = _collect(targets, sequences_dir, recursive)
    if not paths:
        click.echo("Nothing to run. Provide file(s) or --dir.")
        sys.exit(2)

    handler = attach_file_logger(log_file) if log_file else None
    bind(invocation=datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ"))
    click.echo(f"Running {len(paths)} file(s)...")

    results: List[dict] = []
    try:
        for fp in paths:
            try:
                sequences = load_sequences_file(fp)
            except (ValueError, OSError) as e:
                results.append({"ok": False, "file": str(fp), "error": str(e), "error_type": e.__class__.__name__})
                continue
            for seq in sequences:
                try:
                    res = asyncio.run(_run_sequence(
                        seq,
                        settings,
                        iterations=iterations,
                        step_delay=step_delay,
                        iteration_delay=iteration_delay,
                        debug=debug,
                        url=url,
                    ))
                except Exception as e:
                    get_logger(__name__).exception(f"Sequence {seq.name} failed:")
                    res = {"ok": False, "sequence": seq.name, "error": str(e), "error_type": e.__class__.__name__}
                res["file"] = str(fp)
                results.append(res)
    finally:
        unbind("invocation")
        if handler is not None:
            detach_file_logger(handler)

    for res in results:
        label = res.get("sequence") or res["file"]
        if res.get("ok"):
            click.echo(f"OK  {label} -> {res['iterations']} iteration(s) in {res['elapsed']}")
        else:
            click.echo(f"ERR {label} -> {res.get('error_type')}: {res.get('error')}")

    ok_count = sum(1 for r in results if r.get("ok"))
    fail_count = len(results) - ok_count
    click.echo(f"Done. OK={ok_count}  FAIL={fail_count}")

    if json_out:
        outp = Path(json_out).resolve()
        outp.parent.mkdir(parents=True, exist_ok=True)
        outp.write_text(json.dumps({"results": results}, indent=2), encoding="utf-8")
        click.echo(f"Wrote summary: {outp}")

    sys.exit(0 if fail_count == 0 else 1)


def main() -> None:
    cli(prog_name="automator")


if __name__ == "__main__":
    main()
