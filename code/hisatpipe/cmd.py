#!/usr/bin/python3
# -*- coding: utf-8 -*-
"""
Created on Mon Oct 19 10:07:03 2026

@author: hisat2-pipeline developers

Command line parsing for the hisat2 mapping and counting pipeline.
"""

from argparse import ArgumentParser
from dataclasses import dataclass
import os.path
from typing import List, Optional, Sequence

from .errors import ConfigError

# hisat2 indices
DEFAULT_INDEX: str = \
    "/nas02/home/s/f/sfrenk/proj/seq/WS251/genome/hisat2/genome"

# gtf annotation file for genes
DEFAULT_GTF: str = "/nas02/home/s/f/sfrenk/proj/seq/WS251/genes.gtf"

# gtf annotation file for repeats
DEFAULT_RMSK_GTF: str = \
    "/proj/ahmedlab/steve/seq/transposons/ce11_rebpase/ce11_rmsk_original.gtf"

USAGE: str = """
    Basic pipeline for mapping and counting single/paired end reads using hisat2

    USAGE
       step1:   make bbduk.sh, hisat2, samtools and featureCounts available in PATH
       step2:   hisat2-pipeline [options]

    ARGUMENTS
        -d/--dir
        Directory containing read files (fastq.gz format).

        -p/--paired
        Use this option if fastq files contain paired-end reads. NOTE: if
        paired, each pair must consist of two files with the basename ending
        in '_1' or '_2' depending on respective orientation.

        -t/--trim
        Trim reads with bbduk before mapping. If using this option, also
        supply the adapter sequence.

        -x/--index, --gtf, --rmsk_gtf
        hisat2 index prefix, gene annotation and repeat annotation.

        --n_cores
        Threads given to hisat2 (default: $SLURM_NTASKS or 1).

        --count_n_cores
        Threads given to featureCounts (default: 4).

        --out_dir
        Directory receiving every output (default: current directory).
    """


@dataclass(frozen=True)
class RunConfig:
    input_dir: str
    paired: bool
    trim: bool
    adapter: Optional[str]
    index: str
    gtf: str
    rmsk_gtf: str
    n_cores: int
    count_n_cores: int = 4
    out_dir: str = '.'


class _RaisingArgumentParser(ArgumentParser):

    def error(self, message):
        raise ConfigError(message)


def _default_n_cores() -> int:
    try:
        return int(os.environ.get('SLURM_NTASKS', 1))
    except ValueError:
        return 1


class CmdParser():

    def __init__(self, argv: Optional[Sequence[str]] = None):
        """
        Command line argument class

        Arguments:
        -----------
        - argv: Arguments to parse, sys.argv[1:] when None.

        Raises ConfigError on any invalid or missing argument.
        """

        # Define the AgumentParser object
        cmd_args: ArgumentParser = _RaisingArgumentParser(
            prog='hisat2-pipeline',
            description="Map and count single/paired end reads using hisat2",
            add_help=True
        )

        cmd_args.add_argument(
            '-d', '--dir',
            type=str,
            default='',
            required=False,
            help='Directory containing read files (fastq.gz format)'
        )

        cmd_args.add_argument(
            '-p', '--paired',
            action='store_true',
            help="Paired-end reads, mates named <base>_1/<base>_2.fastq.gz"
        )

        cmd_args.add_argument(
            '-t', '--trim',
            type=str,
            default=None,
            required=False,
            metavar='ADAPTER',
            help='Trim reads with bbduk using this adapter sequence'
        )

        cmd_args.add_argument(
            '-x', '--index',
            type=str,
            default=DEFAULT_INDEX,
            required=False,
            help='hisat2 index prefix'
        )

        cmd_args.add_argument(
            '--gtf',
            type=str,
            default=DEFAULT_GTF,
            required=False,
            help='Gene annotation (GTF) path'
        )

        cmd_args.add_argument(
            '--rmsk_gtf',
            type=str,
            default=DEFAULT_RMSK_GTF,
            required=False,
            help='Repeat annotation (GTF) path'
        )

        cmd_args.add_argument(
            '--n_cores',
            type=int,
            default=_default_n_cores(),
            required=False,
            help='Number of CPU cores for hisat2'
        )

        cmd_args.add_argument(
            '--count_n_cores',
            type=int,
            default=4,
            required=False,
            help='Number of CPU cores for featureCounts (default: 4)'
        )

        cmd_args.add_argument(
            '--out_dir',
            type=str,
            default='.',
            required=False,
            help='Output directory path (default: current directory)'
        )

        args = cmd_args.parse_args(argv)

        # Remove trailing "/" from input directory if present
        self.input_dir: str = args.dir.rstrip('/') if args.dir != '/' \
            else args.dir
        self.paired: bool = args.paired
        self.trim: bool = args.trim is not None
        self.adapter: Optional[str] = args.trim
        self.index: str = args.index
        self.gtf: str = args.gtf
        self.rmsk_gtf: str = args.rmsk_gtf
        self.n_cores: int = args.n_cores
        self.count_n_cores: int = args.count_n_cores
        self.out_dir: str = args.out_dir.rstrip('/') or '/'

        self.validate()

    def validate(self) -> None:
        errors: List[str] = []

        if not self.input_dir:
            errors.append('ERROR. No read directory given (-d/--dir)')
        elif not os.path.isdir(self.input_dir):
            errors.append(
                f'ERROR. Read directory not found: {self.input_dir}')

        if self.trim and not self.adapter.strip():
            errors.append('ERROR. --trim needs a non-empty adapter sequence')

        if not os.path.isfile(self.gtf):
            errors.append(f'ERROR. No gene GTF found: {self.gtf}')

        if not os.path.isfile(self.rmsk_gtf):
            errors.append(f'ERROR. No repeat GTF found: {self.rmsk_gtf}')

        if not os.path.isdir(self.out_dir):
            errors.append(f'ERROR. No output directory found: {self.out_dir}')

        if self.n_cores <= 0:
            errors.append('ERROR. hisat2 needs at least 1 CPU core')

        if self.count_n_cores <= 0:
            errors.append('ERROR. featureCounts needs at least 1 CPU core')

        if errors:
            raise ConfigError('\n'.join(errors))

    def to_config(self) -> RunConfig:
        return RunConfig(
            input_dir=self.input_dir,
            paired=self.paired,
            trim=self.trim,
            adapter=self.adapter.strip() if self.trim else None,
            index=self.index,
            gtf=self.gtf,
            rmsk_gtf=self.rmsk_gtf,
            n_cores=self.n_cores,
            count_n_cores=self.count_n_cores,
            out_dir=self.out_dir
        )
