"""
Shared fakes: nothing in the test suite talks to a real systemd.
"""
import asyncio

import pytest

from daemon_manager.models import ActiveState, LoadState, ServiceEntry, UnitStatus


class FakeRun:
    """
    Stand-in for proc.run that records argv and replies from a table.

    :param reply: (rc, stdout, stderr) or a callable taking argv.
    :param delay: Seconds to sleep before replying.
    """

    def __init__(self, reply=(0, "", ""), delay: float = 0.0):
        self.reply = reply
        self.delay = delay
        self.calls = []

    async def __call__(self, *args):
        self.calls.append(list(args))
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.reply(list(args)) if callable(self.reply) else self.reply
        if isinstance(reply, BaseException):
            raise reply
        return reply


class FakeProbe:
    """Probe returning a fixed status per unit, or raising a given error."""

    def __init__(self, statuses=None, errors=None):
        self.statuses = statuses or {}
        self.errors = errors or {}
        self.queried = []

    async def query(self, unit):
        self.queried.append(unit)
        if unit in self.errors:
            raise self.errors[unit]
        return self.statuses.get(unit) or make_status(unit)

    async def status_text(self, unit):
        if unit in self.errors:
            raise self.errors[unit]
        return f"* {unit}\n     Active: active (running)\n"


def make_status(unit: str, active: ActiveState = ActiveState.ACTIVE) -> UnitStatus:
    return UnitStatus(
        unit_name=unit,
        active_state=active,
        sub_state="running" if active is ActiveState.ACTIVE else "dead",
        load_state=LoadState.LOADED,
        enabled=True,
    )


@pytest.fixture
def entries():
    return [
        ServiceEntry(
            logical_id="nm",
            unit_name="NetworkManager.service",
            friendly_name="Network manager",
            logs_enabled=False,
        ),
        ServiceEntry(logical_id="ssh", unit_name="sshd.service", friendly_name="OpenSSH", logs_enabled=True),
        ServiceEntry(logical_id="cron", unit_name="cron.service", friendly_name="Cron", logs_enabled=True),
    ]
