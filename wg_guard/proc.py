import logging
import subprocess
from typing import Optional, Sequence

from .context import OperationContext
from .errors import ExternalCommandError

log = logging.getLogger(__name__)

POLL_INTERVAL = 0.05


def run_command(ctx: OperationContext, argv: Sequence[str], input: Optional[str] = None) -> str:
    """Run ``argv`` to completion and return its combined stdout/stderr.

    The child is killed as soon as ``ctx`` is cancelled or its deadline
    passes, in which case CancelledError is raised. A non-zero exit status
    raises ExternalCommandError carrying the captured output.
    """
    cmd = " ".join(argv)
    ctx.check(cmd)
    log.debug("running %s", cmd)
    try:
        proc = subprocess.Popen(
            list(argv),
            stdin=subprocess.PIPE if input is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except OSError as e:
        raise ExternalCommandError(f"{cmd}: {e.strerror or e}") from e

    pending = input
    while True:
        try:
            out, _ = proc.communicate(input=pending, timeout=POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            # input is only accepted by the first communicate() call
            pending = None
            if ctx.cancelled:
                proc.kill()
                proc.communicate()
                ctx.check(cmd)

    if proc.returncode != 0:
        raise ExternalCommandError(f"{cmd} exited with status {proc.returncode}", output=out or "")
    return out or ""
