"""
Bounded journal reads for a single unit.
"""
import asyncio
import logging

from . import proc
from .errors import LogFetchTimedOut, LogToolUnavailable, UnitNotFound, classify_stderr
from .models import LogChunk

logger = logging.getLogger(__name__)


class LogFetcher:
    """
    Read the most recent journal lines of a unit.

    Callers check ServiceEntry.logs_enabled; the fetcher knows nothing about
    configuration.

    :param journalctl: Path to the journalctl binary.
    :param timeout: Bound on the journalctl call in seconds.
    :param max_lines_limit: Hard cap on lines per request.
    :param since: Optional --since window, e.g. "-1h" or "today".
    :param run: Subprocess runner returning (rc, stdout, stderr).
    """

    def __init__(
        self,
        journalctl: str = "journalctl",
        timeout: float = 10.0,
        max_lines_limit: int = 1000,
        since: str | None = None,
        run=proc.run,
    ):
        self._journalctl = journalctl
        self._timeout = timeout
        self._limit = max_lines_limit
        self._since = since
        self._run = run

    async def fetch(self, unit: str, max_lines: int) -> LogChunk:
        """
        Return up to max_lines of the newest journal lines.

        :param unit: Unit name.
        :param max_lines: Requested number of lines, clamped to [1, limit].

        :returns: LogChunk, truncated when more lines were available.
        """
        lines_wanted = min(max(1, max_lines), self._limit)
        # One extra line tells us whether output was cut.
        args = [
            self._journalctl,
            "--unit",
            unit,
            "--no-pager",
            "--quiet",
            "--output",
            "short-iso",
            "--lines",
            str(lines_wanted + 1),
        ]
        if self._since:
            args += ["--since", self._since]

        try:
            rc, out, err = await asyncio.wait_for(self._run(*args), self._timeout)
        except asyncio.TimeoutError:
            logger.warning("journalctl for %s timed out after %ss", unit, self._timeout)
            raise LogFetchTimedOut(f"journalctl did not finish within {self._timeout}s") from None
        except OSError as e:
            raise LogToolUnavailable(f"cannot run {self._journalctl}: {e}") from e

        if rc != 0:
            if "invalid argument" in err.lower():
                raise UnitNotFound(err.strip())
            raise classify_stderr(err, LogToolUnavailable)

        lines = out.splitlines()
        truncated = len(lines) > lines_wanted
        return LogChunk(unit_name=unit, lines=lines[-lines_wanted:], truncated=truncated)
