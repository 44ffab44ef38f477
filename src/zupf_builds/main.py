"""Command-line watcher for build status updates.

Usage:
    zupf-builds watch BUILD_ID [BUILD_ID ...]

Prints each update as it arrives and exits once every watched build has
finished:
    0  all builds completed
    1  at least one build failed
    2  the live connection gave up before every build finished

Env:
    ZUPF_BUILDS_WS_URL / ZUPF_API_BASE_URL select the endpoint; see
    zupf_builds.config.live_updates for the full list.
"""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from typing import Final

from rich.console import Console
from rich.markup import escape

from zupf_builds import _test_hooks
from zupf_builds.build_events import BuildStatus, BuildStatusUpdate, is_terminal
from zupf_builds.client import BuildUpdatesClient
from zupf_builds.config import LiveUpdateSettings
from zupf_builds.dispatch import BuildListener

EXIT_COMPLETED: Final[int] = 0
EXIT_FAILED: Final[int] = 1
EXIT_GAVE_UP: Final[int] = 2

_STATUS_STYLES: Final[dict[BuildStatus, str]] = {
    "pending": "dim",
    "running": "cyan",
    "completed": "green",
    "failed": "bold red",
}


def format_update(update: BuildStatusUpdate) -> str:
    """Render one update as a rich markup line; server-provided text is escaped."""
    status = update["status"]
    parts = [
        f"[bold]{escape(update['build_id'])}[/bold]",
        f"[{_STATUS_STYLES[status]}]{status}[/]",
    ]
    progress = update.get("progress")
    if progress is not None:
        parts.append(f"{progress:.0f}%")
    message = update.get("message")
    if message is not None:
        parts.append(escape(message))
    return " ".join(parts)


async def watch_builds(
    client: BuildUpdatesClient,
    build_ids: Sequence[str],
    *,
    finished: asyncio.Event,
    console: Console,
) -> dict[str, BuildStatus]:
    """Subscribe to every build and wait until all are terminal or ``finished`` is set.

    Returns the terminal status reached by each build that finished.
    """
    wanted = list(dict.fromkeys(build_ids))
    outcomes: dict[str, BuildStatus] = {}

    def _listener_for(build_id: str) -> BuildListener:
        def _on_update(update: BuildStatusUpdate) -> None:
            console.print(format_update(update))
            if not is_terminal(update):
                return
            outcomes[build_id] = update["status"]
            client.unsubscribe(build_id)
            if len(outcomes) == len(wanted):
                finished.set()

        return _on_update

    for build_id in wanted:
        client.subscribe(build_id, _listener_for(build_id))
    try:
        await finished.wait()
    finally:
        await client.aclose()
    return outcomes


def exit_code_for(build_ids: Sequence[str], outcomes: dict[str, BuildStatus]) -> int:
    if any(build_id not in outcomes for build_id in build_ids):
        return EXIT_GAVE_UP
    if any(status == "failed" for status in outcomes.values()):
        return EXIT_FAILED
    return EXIT_COMPLETED


async def _run_watch(settings: LiveUpdateSettings, build_ids: Sequence[str], console: Console) -> int:
    finished = asyncio.Event()
    client = BuildUpdatesClient.from_settings(
        settings,
        socket_factory=_test_hooks.socket_factory(settings),
        on_exhausted=finished.set,
    )
    console.print(f"Watching {len(build_ids)} build(s) on {client.endpoint}")
    outcomes = await watch_builds(client, build_ids, finished=finished, console=console)
    return exit_code_for(build_ids, outcomes)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zupf-builds", description="Follow build status updates from the live event stream"
    )
    sub = parser.add_subparsers(dest="command", required=True)
    watch = sub.add_parser("watch", help="Print updates until the given builds finish")
    watch.add_argument("build_ids", nargs="+", metavar="BUILD_ID")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = _test_hooks.load_settings()
    _test_hooks.setup_logging(
        level=settings["log_level"],
        format_mode=settings["log_format"],
        service_name="zupf-builds",
        instance_id=None,
        extra_fields=["build_id", "attempt"],
    )
    build_ids: list[str] = list(args.build_ids)
    return asyncio.run(_run_watch(settings, build_ids, Console()))


if __name__ == "__main__":
    raise SystemExit(main())
