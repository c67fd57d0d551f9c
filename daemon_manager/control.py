import asyncio
import logging

from . import proc
from .errors import ActionInProgress, ActionRejected, ActionTimedOut, PanelError, ProbeUnavailable, classify_stderr
from .models import ActionName, ActionOutcome, ActionResult

logger = logging.getLogger(__name__)


class ControlExecutor:
    """
    Start, stop and restart units, one action per unit at a time.

    A request against a unit with an action already in flight is rejected
    with action_in_progress rather than queued.

    :param probe: UnitStatusProbe used to re-read state after an action.
    :param systemctl: Path to the systemctl binary.
    :param timeout: Bound on the control call in seconds.
    :param run: Subprocess runner returning (rc, stdout, stderr).
    """

    def __init__(self, probe, systemctl: str = "systemctl", timeout: float = 30.0, run=proc.run):
        self._probe = probe
        self._systemctl = systemctl
        self._timeout = timeout
        self._run = run
        self._locks: dict[str, asyncio.Lock] = {}

    def busy(self, unit: str) -> bool:
        lock = self._locks.get(unit)
        return lock is not None and lock.locked()

    async def execute(self, unit: str, action: ActionName) -> ActionResult:
        """
        Issue an action and report the unit state that follows it.

        :param unit: Unit name.
        :param action: start, stop or restart.

        :returns: ActionResult; failures are reported in outcome/error.
        """
        action = ActionName(action)
        lock = self._locks.setdefault(unit, asyncio.Lock())
        if lock.locked():
            logger.warning("Rejecting %s of %s: another action is in flight", action.value, unit)
            return ActionResult(
                unit_name=unit,
                requested_action=action,
                outcome=ActionOutcome.FAILED,
                error=ActionInProgress(f"an action on {unit} is already running").to_model(),
            )

        async with lock:
            error = await self._issue(unit, action)
            if error is None:
                outcome = ActionOutcome.SUCCEEDED
            elif isinstance(error, ActionTimedOut):
                outcome = ActionOutcome.TIMED_OUT
            else:
                outcome = ActionOutcome.FAILED

            status = None
            if outcome is not ActionOutcome.FAILED:
                try:
                    status = await self._probe.query(unit)
                except PanelError as e:
                    logger.warning("Status re-query after %s of %s failed: %s", action.value, unit, e.message)
                except Exception:
                    logger.exception("Unexpected status re-query failure after %s of %s", action.value, unit)

        return ActionResult(
            unit_name=unit,
            requested_action=action,
            outcome=outcome,
            resulting_status=status,
            error=error.to_model() if error else None,
        )

    async def _issue(self, unit: str, action: ActionName) -> PanelError | None:
        logger.info("systemctl %s %s", action.value, unit)
        try:
            rc, _, err = await asyncio.wait_for(
                self._run(self._systemctl, "--no-ask-password", action.value, unit), self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning("systemctl %s %s timed out after %ss", action.value, unit, self._timeout)
            return ActionTimedOut(f"{action.value} of {unit} did not finish within {self._timeout}s")
        except OSError as e:
            return ProbeUnavailable(f"cannot run {self._systemctl}: {e}")
        if rc != 0:
            error = classify_stderr(err, ActionRejected)
            logger.warning("systemctl %s %s failed (rc=%s): %s", action.value, unit, rc, error.message)
            return error
        return None
