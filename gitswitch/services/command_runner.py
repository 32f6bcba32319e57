"""Subprocess execution for git commands.

Commands are passed as argv vectors and never go through a shell. A non-zero
exit status does not raise: the status parser decides what the output means.
"""

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from gitswitch.exceptions import CommandFailedError, CommandTimedOutError

logger = logging.getLogger(__name__)

# Missing executable or working directory, same as a shell's "command not found"
NOT_RUNNABLE = 127


@dataclass
class CommandResult:
    args: List[str]
    returncode: int
    lines: List[str] = field(default_factory=list)
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def check(self) -> "CommandResult":
        if not self.ok:
            output = self.stderr.strip() or "\n".join(self.lines).strip()
            raise CommandFailedError(self.args, self.returncode, output)
        return self


class CommandRunner:
    """Run a command in a working directory and capture its stdout lines."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def run(
        self,
        cwd: Path,
        argv: Sequence[str],
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        args = list(argv)
        merged_env = dict(os.environ)
        merged_env["LC_ALL"] = "C"
        if env:
            merged_env.update(env)
        limit = timeout if timeout is not None else self.timeout

        try:
            completed = subprocess.run(
                args,
                cwd=str(cwd),
                env=merged_env,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                timeout=limit,
            )
        except subprocess.TimeoutExpired as exc:
            logger.error(f"Command {' '.join(args)} in {cwd} timed out after {limit}s")
            raise CommandTimedOutError(args, limit) from exc
        except OSError as exc:
            logger.warning(f"Cannot run {' '.join(args)} in {cwd}: {exc}")
            return CommandResult(args=args, returncode=NOT_RUNNABLE, stderr=str(exc))

        result = CommandResult(
            args=args,
            returncode=completed.returncode,
            lines=completed.stdout.splitlines(),
            stderr=completed.stderr or "",
        )
        if not result.ok:
            logger.debug(
                f"{' '.join(args)} exited with {result.returncode}: {result.stderr.strip()}"
            )
        return result


class GitRunner:
    """Prefix the configured git executable and inject the repo's SSH identity."""

    def __init__(self, runner: Optional[CommandRunner] = None, executable: str = "git"):
        self.runner = runner or CommandRunner()
        self.executable = executable

    @staticmethod
    def ssh_environment(ssh_key_path: Optional[Path]) -> Dict[str, str]:
        if ssh_key_path is None:
            return {}
        return {
            "GIT_SSH_COMMAND": f"ssh -i {shlex.quote(str(ssh_key_path))} -o IdentitiesOnly=yes",
        }

    def run(
        self,
        cwd: Path,
        args: Sequence[str],
        ssh_key_path: Optional[Path] = None,
    ) -> CommandResult:
        return self.runner.run(
            cwd, [self.executable, *args], env=self.ssh_environment(ssh_key_path)
        )
