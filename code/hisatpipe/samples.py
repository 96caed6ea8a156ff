#!/usr/bin/python3
# -*- coding: utf-8 -*-
"""
Created on Mon Oct 19 10:28:03 2026

@author: hisat2-pipeline developers

Discovery of the samples to process in a read directory.

Reads are expected as <name>.fastq.gz. In paired mode mates are named
<base>_1.fastq.gz (forward) and <base>_2.fastq.gz (reverse); only the
forward mate opens a sample, so every pair is processed once.
"""

from dataclasses import dataclass
from enum import Enum
import logging
import os
import re
from typing import Iterator, Optional, Tuple

from .errors import MissingMateError

logger = logging.getLogger(__name__)

FASTQ_SUFFIX: str = '.fastq.gz'
FORWARD_MARKER: str = '_1'
REVERSE_MARKER: str = '_2'

FASTQ_RE = re.compile(r'^(?P<name>.+)\.fastq\.gz$')


class SampleMode(Enum):
    SINGLE = 'single'
    PAIRED = 'paired'


@dataclass(frozen=True)
class SampleUnit:
    base: str
    mode: SampleMode
    fq1: str
    fq2: Optional[str] = None

    @property
    def is_paired(self) -> bool:
        return self.mode is SampleMode.PAIRED

    @property
    def fastqs(self) -> Tuple[str, ...]:
        if self.is_paired:
            return (self.fq1, self.fq2)
        return (self.fq1,)


def list_fastq(dpath: str) -> Iterator[Tuple[str, str]]:
    """ Yields (name without suffix, path) of every .fastq.gz file,
    sorted by file name """
    for file in sorted(os.listdir(dpath)):
        match = FASTQ_RE.match(file)
        if match is None:
            continue
        fpath: str = os.path.join(dpath, file)
        if not os.path.isfile(fpath):
            continue
        yield match.group('name'), fpath


def classify_samples(dpath: str, paired: bool) -> Iterator[SampleUnit]:
    """
    Yields one SampleUnit per sample found in a read directory.

    Arguments:
    -----------
    - dpath: Directory containing the .fastq.gz files.
    - paired: Pair <base>_1/<base>_2 files into one sample.

    In paired mode a forward mate without its reverse mate raises
    MissingMateError; reverse mates are never yielded on their own and
    files carrying neither marker are skipped with a warning.
    """
    for name, fpath in list_fastq(dpath):
        if not paired:
            yield SampleUnit(base=name, mode=SampleMode.SINGLE, fq1=fpath)
            continue

        if name.endswith(FORWARD_MARKER):
            base: str = name[:-len(FORWARD_MARKER)]
            if not base:
                logger.warning("Skipping %s: empty sample name", fpath)
                continue
            fq2: str = os.path.join(
                dpath, f'{base}{REVERSE_MARKER}{FASTQ_SUFFIX}')
            if not os.path.isfile(fq2):
                raise MissingMateError(base, fpath, fq2)
            yield SampleUnit(
                base=base, mode=SampleMode.PAIRED, fq1=fpath, fq2=fq2)
        elif name.endswith(REVERSE_MARKER):
            # Consumed together with its forward mate
            continue
        else:
            logger.warning(
                "Skipping %s: no %s/%s mate marker in paired mode",
                fpath, FORWARD_MARKER, REVERSE_MARKER)
