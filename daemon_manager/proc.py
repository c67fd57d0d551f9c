import asyncio
import logging

logger = logging.getLogger(__name__)


async def run(*args: str) -> tuple[int, str, str]:
    """
    Run a subprocess and capture output.

    Callers bound the call with asyncio.wait_for; if the awaiting task is
    cancelled the child is terminated, then killed if it lingers.

    :param args: argv list.

    :returns: (returncode, stdout, stderr).
    """
    proc = await asyncio.create_subprocess_exec(
        *args, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
    )
    try:
        out, err = await proc.communicate()
    finally:
        if proc.returncode is None:
            await _reap(proc, args)
    return proc.returncode, out.decode(errors="replace"), err.decode(errors="replace")


async def _reap(proc: asyncio.subprocess.Process, args: tuple[str, ...]) -> None:
    logger.warning("Terminating unfinished process: %s", " ".join(args))
    try:
        proc.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(proc.wait(), 2.0)
    except asyncio.TimeoutError:
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()
