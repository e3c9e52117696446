"""Outbox demo application entrypoint.

Simulates two LearnLite business operations that publish notification events,
then lets the worker drain the outbox to the console:

    enroll_student -> enrollment.created
    issue_certificate -> certificate.issued
    NotificationWorker.drain -> ConsoleSink

Usage:
    python -m learnlite_notifications.apps.demo.main
"""

import asyncio
import secrets
from dataclasses import dataclass, field
from typing import IO

from learnlite_notifications.core.config import NotificationSettings
from learnlite_notifications.core.publisher import Publisher
from learnlite_notifications.core.worker import NotificationWorker, WorkerStats, WorkerStatus
from learnlite_notifications.sinks.console import ConsoleSink
from learnlite_notifications.stores.memory import InMemoryEventStore


@dataclass
class DemoApp:
    """Minimal stand-in for the application's enrollment and certificate services."""

    publisher: Publisher
    enrollments: list[dict] = field(default_factory=list)
    certificates: list[dict] = field(default_factory=list)

    async def enroll_student(self, user_id: int, course_id: int) -> dict:
        enrollment = {"id": len(self.enrollments) + 1, "userId": user_id, "courseId": course_id}
        self.enrollments.append(enrollment)

        if self.publisher.is_delivery_enabled():
            await self.publisher.publish(
                "enrollment.created",
                {"enrollmentId": enrollment["id"], "userId": user_id, "courseId": course_id},
            )
        return enrollment

    async def issue_certificate(self, user_id: int, course_id: int) -> dict:
        certificate = {
            "id": len(self.certificates) + 1,
            "userId": user_id,
            "courseId": course_id,
            "code": secrets.token_hex(4).upper(),
        }
        self.certificates.append(certificate)

        if self.publisher.is_delivery_enabled():
            await self.publisher.publish(
                "certificate.issued",
                {
                    "certificateId": certificate["id"],
                    "userId": user_id,
                    "courseId": course_id,
                    "code": certificate["code"],
                },
            )
        return certificate


async def run_demo(
    students: int = 3,
    course_id: int = 101,
    stream: IO[str] | None = None,
) -> tuple[WorkerStats, WorkerStatus]:
    """Enroll and certify ``students`` users, then deliver every event.

    Args:
        students: Number of simulated students.
        course_id: Course every student enrolls in.
        stream: Console sink output; defaults to stderr.

    Returns:
        A tuple of (WorkerStats, WorkerStatus) after the outbox is drained.

    Example:
        stats, status = await run_demo()
        print(f"Delivered {stats.events_delivered} events")
    """
    settings = NotificationSettings(enabled=True, poll_interval=0.1)
    store = InMemoryEventStore()
    await store.initialize()

    app = DemoApp(publisher=Publisher(store, settings))
    for user_id in range(1, students + 1):
        await app.enroll_student(user_id, course_id)
        await app.issue_certificate(user_id, course_id)

    worker = NotificationWorker(store, ConsoleSink(stream=stream), settings)
    await worker.drain()
    await store.close()
    return worker.get_stats(), worker.get_status()


def main() -> None:
    """Main entry point for the outbox demo."""
    print("Publishing LearnLite notifications...\n")
    stats, status = asyncio.run(run_demo())
    print(
        f"\nDelivered {stats.events_delivered} event(s), "
        f"{status.pending_estimate} pending"
    )


if __name__ == "__main__":
    main()
