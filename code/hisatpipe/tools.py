#!/usr/bin/python3
# -*- coding: utf-8 -*-
"""
Created on Mon Oct 19 10:35:03 2026

@author: hisat2-pipeline developers

Thin wrapper around the external tools.

Every call goes through run_command(), which runs the tool without a shell,
captures stdout/stderr and optionally keeps a copy of both in a log file.
Callers decide which ToolError subclass a non-zero exit maps to.
"""

from dataclasses import dataclass
import logging
import os
import shutil
import subprocess
import time
from typing import List, Optional, Sequence

from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    args: List[str]
    returncode: int
    stdout: str
    stderr: str
    time_in_sec: float

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def cmd(self) -> str:
        return ' '.join(self.args)

    def stderr_tail(self, n_lines: int = 10) -> str:
        rows: List[str] = self.stderr.strip().split('\n')
        return '\n'.join(rows[-n_lines:]).strip()


def run_command(args: Sequence[str], log_fpath: Optional[str] = None
    ) -> CommandResult:
    """
    Runs an external command and waits for it to exit.

    Arguments:
    -----------
    - args: Command and its arguments.
    - log_fpath: If given, the command line, stdout and stderr are written
      there once the command exits.

    A command that cannot be started (binary not found) is reported as a
    result with return code 127, the same a shell would give.
    """
    args = [str(a) for a in args]
    cmd: str = ' '.join(args)
    logger.debug("Running: %s", cmd)

    s_time: float = time.time()
    try:
        proc = subprocess.run(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            universal_newlines=True
        )
        result: CommandResult = CommandResult(
            args=args,
            returncode=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
            time_in_sec=round(time.time()-s_time, 2)
        )
    except OSError as e:
        result = CommandResult(
            args=args,
            returncode=127,
            stdout='',
            stderr=f"{args[0]}: {e.strerror}",
            time_in_sec=round(time.time()-s_time, 2)
        )

    if log_fpath:
        with open(log_fpath, 'w') as f:
            f.write(f"===== CMD =====\n{cmd}\n")
            f.write(f"===== EXIT =====\n{result.returncode}\n")
            f.write(f"===== STDOUT =====\n{result.stdout}\n")
            f.write(f"===== STDERR =====\n{result.stderr}\n")

    if not result.ok:
        logger.debug("command '%s' returned with error (code %d)",
            cmd, result.returncode)
    return result


def check_tools(tools: Sequence[str]) -> List[str]:
    """
    Resolves every tool on PATH and returns their full paths.

    Raises ConfigError listing the tools that could not be found.
    """
    found: List[str] = []
    missing: List[str] = []
    for tool in tools:
        path: Optional[str] = shutil.which(tool)
        if path is None:
            missing.append(tool)
        else:
            found.append(path)

    if missing:
        raise ConfigError(
            f"Required tool(s) not found in PATH: {', '.join(missing)} " \
            f"(PATH={os.environ.get('PATH', '')})")
    return found
