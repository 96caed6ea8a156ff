#!/usr/bin/python3
# -*- coding: utf-8 -*-
"""
Created on Mon Oct 19 10:21:03 2026

@author: hisat2-pipeline developers

Entry point: parse the command line, run the workflow, map the outcome to
an exit status.
"""

import logging
import sys
from typing import List, Optional, Sequence

from .cmd import USAGE, CmdParser, RunConfig
from .errors import PipelineError
from .worker import RunSummary, Worker


def setup_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        format='%(asctime)s\t%(levelname)s\t%(name)s: %(message)s',
        datefmt='%m-%d-%Y_%H:%M',
        level=level
    )


def print_error(*args, **kwargs):
    print(*args, file = sys.stderr, **kwargs)


def main(argv: Optional[Sequence[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        print(USAGE)
        return 0

    setup_logging()

    try:
        config: RunConfig = CmdParser(argv).to_config()
        summary: RunSummary = Worker(config).run()
    except PipelineError as e:
        print_error(e)
        return 1

    if summary.failures:
        failed: List[str] = sorted(summary.failures)
        print_error(f"Failed samples: {', '.join(failed)}")
    for err in summary.count_errors:
        print_error(err)

    return 0 if summary.ok else 1
