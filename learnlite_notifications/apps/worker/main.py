"""Notifications worker process entrypoint.

Run modes:
  learnlite-notifications                 # run the worker until SIGINT/SIGTERM
  learnlite-notifications publish enrollment.created '{"enrollmentId": 1}'
  learnlite-notifications status          # print the health body as JSON
  learnlite-notifications drain           # deliver everything pending, then exit

Equivalent to ``python -m learnlite_notifications.apps.worker.main``.
"""

import argparse
import asyncio
import json
import signal
import sys

from learnlite_notifications.core.config import NotificationSettings
from learnlite_notifications.core.logging import configure_logging, get_logger
from learnlite_notifications.core.publisher import Publisher
from learnlite_notifications.core.status import StatusReporter
from learnlite_notifications.core.worker import NotificationWorker
from learnlite_notifications.sinks import build_sink
from learnlite_notifications.stores import build_store

log = get_logger("learnlite_notifications.apps.worker")


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler; Ctrl+C still raises KeyboardInterrupt
            log.debug(f"Signal handler for {sig.name} not supported on this platform")


async def run_worker(
    settings: NotificationSettings,
    stop_event: asyncio.Event | None = None,
) -> int:
    """Run the worker until ``stop_event`` is set (or a shutdown signal arrives).

    Returns:
        Process exit code.
    """
    if not settings.enabled:
        log.info("Notifications worker: disabled")
        return 0

    log.info("Starting notifications worker", extra={"config": settings.summary()})
    store = build_store(settings)
    await store.initialize()
    worker = NotificationWorker(store, build_sink(settings), settings)

    if stop_event is None:
        stop_event = asyncio.Event()
        _install_signal_handlers(stop_event)

    try:
        await worker.start()
        await stop_event.wait()
        log.info("Shutdown requested, stopping notifications worker")
    finally:
        await worker.stop()
        await store.close()
    return 0


async def publish_once(settings: NotificationSettings, topic: str, payload_json: str) -> int:
    try:
        payload = json.loads(payload_json)
    except json.JSONDecodeError as e:
        print(f"Invalid JSON payload: {e}", file=sys.stderr)
        return 2

    store = build_store(settings)
    await store.initialize()
    try:
        event_id = await Publisher(store, settings).publish(topic, payload)
    finally:
        await store.close()

    if event_id is None:
        print(f"Failed to publish {topic}", file=sys.stderr)
        return 1
    print(event_id)
    return 0


async def print_status(settings: NotificationSettings) -> int:
    worker = None
    store = None
    if settings.enabled:
        store = build_store(settings)
        await store.initialize()
        worker = NotificationWorker(store, build_sink(settings), settings)
        await worker.refresh_pending_estimate()
    try:
        response = StatusReporter(worker, settings).health()
    finally:
        if store is not None:
            await store.close()

    print(json.dumps(response.body, indent=2, default=str))
    return 0 if response.ok else 1


async def drain(settings: NotificationSettings) -> int:
    store = build_store(settings)
    await store.initialize()
    worker = NotificationWorker(store, build_sink(settings), settings)
    try:
        delivered = await worker.drain()
        pending = await store.count_pending()
    finally:
        await store.close()

    print(f"Delivered {delivered} event(s), {pending} still pending")
    return 0 if pending == 0 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="learnlite-notifications",
        description="Outbox notification delivery worker",
    )
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Run the worker until interrupted (default)")

    publish = sub.add_parser("publish", help="Publish one event to the outbox")
    publish.add_argument("topic", help="Event topic, e.g. enrollment.created")
    publish.add_argument("payload", nargs="?", default="{}", help="JSON object payload")

    sub.add_parser("status", help="Print notifications health as JSON")
    sub.add_parser("drain", help="Deliver all pending events, then exit")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the notifications worker."""
    args = build_parser().parse_args(argv)
    settings = NotificationSettings()
    configure_logging(settings.log_level)

    command = args.command or "run"
    if command == "publish":
        return asyncio.run(publish_once(settings, args.topic, args.payload))
    if command == "status":
        return asyncio.run(print_status(settings))
    if command == "drain":
        return asyncio.run(drain(settings))
    return asyncio.run(run_worker(settings))


if __name__ == "__main__":
    sys.exit(main())
