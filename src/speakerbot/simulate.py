"""
simulate.py — Offline dry run of the proactive jobs

Runs both jobs against a throwaway SQLite store and a RecordingNotifier, so
an operator can see what would be sent without a bot token:

  1. reminders         talk today + talk tomorrow (speaker DMs closed → thread fallback)
  2. reminders rerun   nothing new goes out
  3. overlap           two concurrent reminder runs, one is skipped
  4. weekly summary    talks inside the window are listed, the one 14 days out is not
  5. empty week        only a talk 14 days out → volunteer call to action
  6. disabled          both features switched off → skipped / disabled

Each scenario states what it expects; the exit code is 1 if any expectation
failed.
"""

from __future__ import annotations

import asyncio
import json
import tempfile
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Awaitable, Callable

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from speakerbot.config.settings import ProactiveConfig, Settings
from speakerbot.notify.recording import RecordingNotifier
from speakerbot.proactive.jobs.weekly import VOLUNTEER_CTA
from speakerbot.proactive.results import JobResult, JobStatus
from speakerbot.proactive.service import ProactiveService
from speakerbot.store.models import Talk, to_utc_date, utc_now
from speakerbot.store.sqlite_store import SqliteStore

console = Console()

SIM_CHANNEL = "-1000000000001"
SIM_THREAD = "-1000000000002:7"
SIM_COMMUNITY = "-1000000000000"


@dataclass
class ScenarioOutcome:
    name: str
    results: list[JobResult]
    passed: bool
    note: str = ""


def _echo(destination: str, text: str) -> None:
    console.print(Panel(text, title=f"→ {destination}", title_align="left", border_style="dim"))


def _seed_talks(today) -> list[Talk]:
    return [
        Talk("1001", "Ada", "Type-safe config with pydantic", today),
        Talk("1002", "Grace", "Compilers for everyone", today + timedelta(days=1), thread_id=SIM_THREAD),
        Talk("1003", "Linus", "Shipping small patches", today + timedelta(days=3)),
        Talk("1004", "Barbara", "Abstraction boundaries", today + timedelta(days=14)),
    ]


async def _with_store(db_path: Path, talks: list[Talk], body: Callable[[SqliteStore], Awaitable[Any]]) -> Any:
    store = SqliteStore(str(db_path))
    await store.init()
    try:
        for talk in talks:
            await store.add_talk(talk)
        return await body(store)
    finally:
        await store.close()


async def _main_scenarios(workdir: Path, base: ProactiveConfig) -> list[ScenarioOutcome]:
    today = to_utc_date(utc_now())
    outcomes: list[ScenarioOutcome] = []

    async def body(store: SqliteStore) -> None:
        notifier = RecordingNotifier(unreachable_speakers={"1002"}, on_send=_echo)
        service = ProactiveService(base, store, notifier)

        first = await service.run_reminders()
        r = first.payload
        outcomes.append(ScenarioOutcome(
            "reminders",
            [first],
            first.succeeded and r.tminus1_sent == 1 and r.day_of_sent == 1
            and len(notifier.channel_posts(SIM_THREAD)) == 1,
            "expects 1 day-before (via booking thread) + 1 day-of",
        ))

        rerun = await service.run_reminders()
        r = rerun.payload
        outcomes.append(ScenarioOutcome(
            "reminders rerun",
            [rerun],
            rerun.succeeded and r.tminus1_sent == 0 and r.day_of_sent == 0,
            "expects nothing new",
        ))

        a, b = await asyncio.gather(service.run_reminders(), service.run_reminders())
        statuses = sorted([a.status.value, b.status.value])
        outcomes.append(ScenarioOutcome(
            "overlap",
            [a, b],
            statuses == [JobStatus.SKIPPED.value, JobStatus.SUCCESS.value],
            "expects one success and one skipped/already_running",
        ))

        weekly = await service.run_weekly_summary()
        ann = weekly.payload
        outcomes.append(ScenarioOutcome(
            "weekly summary",
            [weekly],
            weekly.succeeded and ann.posted and ann.talks_count == 3,
            "expects 3 talks listed (today, tomorrow, +3 days)",
        ))

    await _with_store(workdir / "main.db", _seed_talks(today), body)
    return outcomes


async def _empty_week(workdir: Path, base: ProactiveConfig) -> ScenarioOutcome:
    today = to_utc_date(utc_now())

    async def body(store: SqliteStore) -> ScenarioOutcome:
        notifier = RecordingNotifier(on_send=_echo)
        result = await ProactiveService(base, store, notifier).run_weekly_summary()
        posts = notifier.channel_posts(SIM_CHANNEL)
        return ScenarioOutcome(
            "empty week",
            [result],
            result.payload.posted
            and result.payload.talks_count == 0
            and len(posts) == 1
            and posts[0].text == VOLUNTEER_CTA,
            "expects the volunteer call to action",
        )

    talks = [Talk("2001", "Edsger", "Structured programming", today + timedelta(days=14))]
    return await _with_store(workdir / "empty.db", talks, body)


async def _disabled(workdir: Path, base: ProactiveConfig) -> ScenarioOutcome:
    today = to_utc_date(utc_now())
    config = base.model_copy(update={"reminders_enabled": False, "weekly_enabled": False})

    async def body(store: SqliteStore) -> ScenarioOutcome:
        notifier = RecordingNotifier(on_send=_echo)
        service = ProactiveService(config, store, notifier)
        results = [await service.run_reminders(), await service.run_weekly_summary()]
        return ScenarioOutcome(
            "disabled",
            results,
            all(r.succeeded and r.payload.skipped for r in results) and notifier.total_sent == 0,
            "expects both skipped/disabled, nothing sent",
        )

    talks = [Talk("3001", "Margaret", "Flight software", today + timedelta(days=1))]
    return await _with_store(workdir / "disabled.db", talks, body)


def _render(outcomes: list[ScenarioOutcome]) -> None:
    table = Table(title="speakerbot simulation", show_lines=True)
    table.add_column("Scenario", style="bold")
    table.add_column("Result", no_wrap=True)
    table.add_column("Envelope")
    table.add_column("Expectation", style="dim")
    for o in outcomes:
        envelope = "\n".join(json.dumps(r.to_dict(), ensure_ascii=False) for r in o.results)
        verdict = "[green]✓ pass[/green]" if o.passed else "[red]✗ fail[/red]"
        table.add_row(o.name, verdict, envelope, o.note)
    console.print(table)


async def run_simulation(settings: Settings) -> int:
    # Real channel ids from config are replaced; nothing leaves the process.
    base = settings.proactive.model_copy(update={
        "reminders_enabled": True,
        "weekly_enabled": True,
        "community_id": SIM_COMMUNITY,
        "announcements_channel_id": SIM_CHANNEL,
    })

    with tempfile.TemporaryDirectory(prefix="speakerbot-sim-") as tmp:
        workdir = Path(tmp)
        outcomes = await _main_scenarios(workdir, base)
        outcomes.append(await _empty_week(workdir, base))
        outcomes.append(await _disabled(workdir, base))

    _render(outcomes)
    failed = [o.name for o in outcomes if not o.passed]
    if failed:
        console.print(f"[red]Failed: {', '.join(failed)}[/red]")
        return 1
    console.print("[green]All scenarios behaved as expected.[/green]")
    return 0
