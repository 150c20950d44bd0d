"""
main.py — speakerbot Entry Point

Usage:
    speakerbot                                  # serve (default)
    speakerbot serve                            # Telegram bot + scheduler + HTTP trigger
    speakerbot trigger reminders                # run one job now, print its result
    speakerbot trigger weekly
    speakerbot simulate                         # dry run against a temp store, no Telegram
    speakerbot --log-level DEBUG serve
    speakerbot --config path/to/config.yaml serve
"""

from __future__ import annotations
# ─────────────────────────────────────────────────────────────────────────────
# Load environment variables before settings are imported
# ─────────────────────────────────────────────────────────────────────────────

from dotenv import load_dotenv
from pathlib import Path


def _find_env_file() -> Path | None:
    """Walk up from CWD looking for .env file."""
    cwd = Path.cwd()
    for d in [cwd, *cwd.parents]:
        candidate = d / ".env"
        if candidate.is_file():
            return candidate
    return None


_env_path = _find_env_file()
if _env_path:
    load_dotenv(dotenv_path=_env_path)

# ─────────────────────────────────────────────────────────────────────────────
import argparse
import asyncio
import json
import signal
import sys
from typing import Optional


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="speakerbot",
        description="speakerbot — speaker reminders and weekly talk schedule announcements",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: $SPEAKERBOT_CONFIG or config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override log level from config",
    )

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("serve", help="Run the Telegram bot, the scheduler and the HTTP trigger (default).")
    trigger = sub.add_parser("trigger", help="Run one proactive job once and print its result as JSON.")
    trigger.add_argument("job", choices=["reminders", "weekly"])
    sub.add_parser("simulate", help="Exercise both jobs against a temporary store. Nothing is sent.")

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "serve"
    return args


def bootstrap(
    args: argparse.Namespace,
    *,
    require_bot: bool = True,
    console_output: Optional[bool] = None,
):
    """
    Load config, validate it fully, and set up logging.
    Returns (settings, log) ready for use.

    Exits with code 1 (after printing a clear message) if:
      - config.yaml has invalid values (Pydantic ValidationError)
      - cross-field problems are found (ConfigError from validate_all())
    """
    from speakerbot.config.settings import ConfigError, load_settings
    from speakerbot.observability.logger import get_logger, setup_logging
    from pydantic import ValidationError

    # -- Load and parse -------------------------------------------------------
    try:
        settings = load_settings(args.config)
    except ValidationError as exc:
        problems = "\n".join(
            f"  • {'.'.join(str(p) for p in e['loc']) if e['loc'] else '?'}: {e['msg']}"
            for e in exc.errors()
        )
        print(
            f"\n❌  Config validation failed:\n\n{problems}\n\n"
            f"    Fix config/config.yaml or your .env file and restart.\n",
            file=sys.stderr,
        )
        sys.exit(1)
    except (OSError, ValueError, TypeError) as exc:
        print(
            f"\n❌  Failed to load config: {type(exc).__name__}: {exc}\n",
            file=sys.stderr,
        )
        sys.exit(1)

    # -- Cross-field validation -----------------------------------------------
    try:
        settings.validate_all(require_bot=require_bot)
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    # -- Logging --------------------------------------------------------------
    # CLI --log-level flag overrides config.yaml
    cfg = settings.logging
    setup_logging(
        level=args.log_level or settings.log_level,
        log_dir=settings.log_dir,
        json_format=cfg.json_format,
        console_output=cfg.console_output if console_output is None else console_output,
        max_bytes=cfg.max_file_size_mb * 1024 * 1024,
        backup_count=cfg.backup_count,
    )

    log = get_logger("speakerbot.main")
    if settings.proactive.weekly_enabled and not settings.has_summary_destination:
        log.warning(
            "config.no_summary_destination",
            hint="set proactive.community_id (and run /set_proactive_channel) "
                 "or proactive.announcements_channel_id",
        )
    return settings, log


# ── serve ─────────────────────────────────────────────────────────────────────

async def serve(settings, log) -> int:
    from speakerbot.gateway.trigger_server import build_trigger_server, create_trigger_app
    from speakerbot.interfaces.telegram_commands import build_application
    from speakerbot.notify.telegram_client import TelegramNotifier
    from speakerbot.proactive.service import ProactiveService
    from speakerbot.store.sqlite_store import SqliteStore

    store = SqliteStore(settings.store.sqlite_path)
    await store.init()

    app = build_application(settings.telegram_bot_token, store, settings.telegram.admin_user_ids)
    service = ProactiveService(settings.proactive, store, TelegramNotifier(app.bot))
    scheduler = service.build_scheduler()

    http_server = None
    http_task: Optional[asyncio.Task] = None

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops: Ctrl+C surfaces as KeyboardInterrupt instead.
            pass

    try:
        await app.initialize()
        await app.start()
        await app.updater.start_polling()

        await scheduler.start()

        if settings.http.enabled:
            trigger_app = create_trigger_app(service, settings.cron_secret, scheduler)
            http_server = build_trigger_server(trigger_app, settings.http.host, settings.http.port)
            http_task = asyncio.create_task(http_server.serve(), name="http:trigger")

        log.info(
            "speakerbot.started",
            http=f"{settings.http.host}:{settings.http.port}" if settings.http.enabled else None,
            schedules=[s.describe() for s in service.schedules()],
        )
        await stop_event.wait()
    finally:
        log.info("speakerbot.stopping")
        await scheduler.stop()
        await scheduler.drain()
        if http_server is not None and http_task is not None:
            http_server.should_exit = True
            await http_task
        if app.updater and app.updater.running:
            await app.updater.stop()
        if app.running:
            await app.stop()
        await app.shutdown()
        await store.close()
        log.info("speakerbot.stopped")
    return 0


# ── trigger ───────────────────────────────────────────────────────────────────

async def trigger(settings, log, job: str) -> int:
    from telegram import Bot

    from speakerbot.notify.telegram_client import TelegramNotifier
    from speakerbot.proactive.results import JobStatus
    from speakerbot.proactive.service import ProactiveService
    from speakerbot.store.sqlite_store import SqliteStore

    store = SqliteStore(settings.store.sqlite_path)
    await store.init()
    try:
        async with Bot(settings.telegram_bot_token) as bot:
            service = ProactiveService(settings.proactive, store, TelegramNotifier(bot))
            if job == "reminders":
                result = await service.run_reminders()
            else:
                result = await service.run_weekly_summary()
    finally:
        await store.close()

    log.info("speakerbot.trigger.done", job=result.job, status=result.status.value)
    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 1 if result.status is JobStatus.ERROR else 0


# ── main ──────────────────────────────────────────────────────────────────────

async def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)

    if args.command == "simulate":
        from speakerbot.simulate import run_simulation
        settings, _log = bootstrap(args, require_bot=False, console_output=False)
        return await run_simulation(settings)

    settings, log = bootstrap(args)

    if args.command == "trigger":
        return await trigger(settings, log, args.job)
    return await serve(settings, log)


def run() -> None:
    """Console-script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
