"""Builders shared by the test modules."""

from __future__ import annotations

from datetime import datetime, timezone

from codetime.schemas import HeartbeatPayload

NOW = datetime(2024, 3, 6, 12, 0, tzinfo=timezone.utc)

VSCODE_UA = (
    "wakatime/13.0.7 (Linux-4.15.0-91-generic-x86_64-with-glibc2.4) "
    "Python3.8.0.final.0 vscode/1.42.1 vscode-wakatime/4.0.0"
)


class FixedClock:
    """Manually advanced clock for InMemoryDb."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def beat(at: datetime, **fields: object) -> HeartbeatPayload:
    """A heartbeat at ``at`` with sensible defaults."""
    data: dict[str, object] = {
        "time": at.timestamp(),
        "entity": "/src/main.py",
        "project": "codetime",
        "language": "Python",
        "user_agent": VSCODE_UA,
    }
    data.update(fields)
    return HeartbeatPayload(**data)
