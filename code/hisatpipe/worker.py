#!/usr/bin/python3
# -*- coding: utf-8 -*-
"""
Created on Mon Oct 19 10:42:03 2026

@author: hisat2-pipeline developers

Sequential hisat2 mapping and counting workflow.

For every sample: optional bbduk trimming, hisat2 alignment, samtools
filtering/sorting/indexing and mapped read count. Then featureCounts is run
once over all sorted BAMs of the run for genes and once for repeats.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
import logging
import os
from shutil import rmtree
import time
from typing import Any, Dict, List, Optional, Sequence, Type

import pandas as pd

from .cmd import RunConfig
from .errors import (AlignError, ConfigError, CountError, PostProcessError,
    ToolError, TrimError)
from .samples import SampleUnit, classify_samples
from .tools import CommandResult, check_tools, run_command

logger = logging.getLogger(__name__)

BBDUK_PARAMS: List[str] = [
    'ktrim=r', 'overwrite=true', 'k=23', 'mink=11', 'hdist=1', 'tpe', 'tbo'
]
HISAT2_PARAMS: List[str] = ['--max-intronlen', '12000', '--no-mixed']
GENE_COUNT_PARAMS: List[str] = ['-t', 'exon', '-Q', '30', '-g', 'gene_name']
REPEAT_COUNT_PARAMS: List[str] = ['-t', 'exon', '-M', '--primary']

# Leading featureCounts columns before the per-BAM counts
COUNT_ANNOTATION_COLS: List[str] = [
    'Geneid', 'Chr', 'Start', 'End', 'Strand', 'Length'
]


@dataclass(frozen=True)
class AlignmentResult:
    sample: SampleUnit
    sorted_bam: str
    mapped_reads: int


@dataclass
class RunSummary:
    results: List[AlignmentResult] = field(default_factory=list)
    failures: Dict[str, ToolError] = field(default_factory=dict)
    count_errors: List[CountError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures and not self.count_errors

    @property
    def sorted_bams(self) -> List[str]:
        return [r.sorted_bam for r in self.results]


def read_count_matrix(fpath: str) -> pd.DataFrame:
    """
    Loads a featureCounts matrix, skipping its leading '# Program' line.
    Sample columns are named after the BAM paths given to featureCounts.
    """
    with open(fpath, 'r') as f:
        first: str = f.readline()

    return pd.read_csv(
        fpath,
        sep='\t',
        skiprows=1 if first.startswith('#') else 0,
        encoding='utf-8'
    )


class Worker():

    def __init__(self, config: RunConfig):
        """
        Worker class

        Arguments:
        -----------
        - config: A validated RunConfig.
        """
        self.config: RunConfig = config
        o_path: str = config.out_dir
        self.trimmed_dpath: str = os.path.join(o_path, 'trimmed')
        self.align_dpath: str = os.path.join(o_path, 'hisat2_out')
        self.bam_dpath: str = os.path.join(o_path, 'bam')
        self.count_dpath: str = os.path.join(o_path, 'count')
        self.logs_dpath: str = os.path.join(o_path, 'logs')
        self.run_params_fpath: str = \
            os.path.join(o_path, 'run_parameters.txt')
        self.mapped_reads_fpath: str = \
            os.path.join(o_path, 'total_mapped_reads.txt')
        self.gene_counts_fpath: str = \
            os.path.join(self.count_dpath, 'counts.txt')
        self.repeat_counts_fpath: str = \
            os.path.join(self.count_dpath, 'repeat_counts.txt')

    # =========================================================================
    # Setup and bookkeeping
    # =========================================================================
    def required_tools(self) -> List[str]:
        tools: List[str] = ['hisat2', 'samtools', 'featureCounts']
        if self.config.trim:
            tools.insert(0, 'bbduk.sh')
        return tools

    def managed_dirs(self) -> List[str]:
        """ Output directories wiped at the start of every run """
        dpaths: List[str] = [
            self.align_dpath, self.bam_dpath, self.count_dpath,
            self.logs_dpath
        ]
        if self.config.trim:
            dpaths.insert(0, self.trimmed_dpath)
        return dpaths

    def check_input_dir(self) -> None:
        """
        Raises ConfigError when the read directory is one of the managed
        output directories or lies inside one, since prepare_dirs() would
        delete the reads.
        """
        in_path: str = os.path.realpath(self.config.input_dir)
        for dpath in self.managed_dirs():
            o_path: str = os.path.realpath(dpath)
            if in_path == o_path or in_path.startswith(o_path + os.sep):
                raise ConfigError(
                    f"ERROR. Read directory {self.config.input_dir} is " \
                    f"inside the output directory {dpath}, which is " \
                    "cleared at every run")

    def prepare_dirs(self) -> None:
        """ Recreates every output directory so no file of a previous run
        can reach the counting step """
        for dpath in self.managed_dirs():
            if os.path.isdir(dpath):
                self.delete_file_or_dir(dpath)
            self.create_dir(dpath)

        self.delete_file_or_dir(self.mapped_reads_fpath)

    def write_run_parameters(self, tool_paths: Sequence[str]) -> None:
        c: RunConfig = self.config
        with open(self.run_params_fpath, 'w') as f:
            f.write(f"{datetime.now().strftime('%m-%d-%Y_%H:%M')}\n\n")
            f.write("Pipeline: hisat2\n\n")
            f.write(f"Parameters:sample directory: {c.input_dir}\n")
            f.write(f"\tpaired end: {str(c.paired).lower()}\n")
            f.write(f"\ttrim: {str(c.trim).lower()} adapter={c.adapter or ''}\n")
            f.write(f"\thisat2 index: {c.index}\n")
            f.write(f"\tgene annotation: {c.gtf}\n")
            f.write(f"\trepeat annotation: {c.rmsk_gtf}\n")
            f.write(f"\thisat2 threads: {c.n_cores}\n")
            f.write(f"\tfeatureCounts threads: {c.count_n_cores}\n")
            f.write("\nTools:\n")
            for path in tool_paths:
                f.write(f"\t{path}\n")
            f.write("\nSamples:")

    def append_run_log(self, text: str) -> None:
        with open(self.run_params_fpath, 'a') as f:
            f.write(text)

    def append_mapped_reads(self, base: str, mapped_reads: int) -> None:
        with open(self.mapped_reads_fpath, 'a') as f:
            f.write(f"{base}\t{mapped_reads}\n")

    def log_fpath(self, base: str, step: str) -> str:
        return os.path.join(self.logs_dpath, f'{base}_{step}.log')

    def check_result(self, result: CommandResult, error_cls: Type[ToolError],
        base: Optional[str], message: str) -> None:
        if not result.ok:
            raise error_cls(
                f"{message} (command '{result.cmd}' exited with code " \
                f"{result.returncode})",
                sample=base,
                result=result
            )

    # =========================================================================
    # Per sample steps
    # =========================================================================
    def trim(self, sample: SampleUnit) -> SampleUnit:
        """
        Adapter trimming with bbduk.

        Returns a copy of the sample pointing at the trimmed reads. Each
        trimmed mate is named after its own input mate.
        """
        base: str = sample.base
        logger.info("Trimming %s with bbduk...", base)

        if sample.is_paired:
            out1: str = os.path.join(self.trimmed_dpath, f'{base}_1.fastq.gz')
            out2: Optional[str] = \
                os.path.join(self.trimmed_dpath, f'{base}_2.fastq.gz')
            cmd: List[str] = [
                'bbduk.sh',
                f'in1={sample.fq1}',
                f'in2={sample.fq2}',
                f'out1={out1}',
                f'out2={out2}',
                f'literal={self.config.adapter}'
            ] + BBDUK_PARAMS
            outputs: List[str] = [out1, out2]
        else:
            out1 = os.path.join(self.trimmed_dpath, f'{base}.fastq.gz')
            out2 = None
            cmd = [
                'bbduk.sh',
                f'in={sample.fq1}',
                f'out={out1}',
                f'literal={self.config.adapter}'
            ] + BBDUK_PARAMS
            outputs = [out1]

        result: CommandResult = run_command(cmd, self.log_fpath(base, 'bbduk'))
        try:
            self.check_result(result, TrimError, base, 'bbduk failed')
            for fpath in outputs:
                if not os.path.isfile(fpath):
                    raise TrimError(
                        f"No trimmed reads found: {fpath}",
                        sample=base, result=result)
        except TrimError:
            for fpath in outputs:
                self.delete_file_or_dir(fpath)
            raise

        return replace(sample, fq1=out1, fq2=out2)

    def align(self, sample: SampleUnit) -> str:
        """ hisat2 alignment, returns the SAM file path """
        base: str = sample.base
        sam_fpath: str = os.path.join(self.align_dpath, f'{base}.sam')
        logger.info("Mapping %s with hisat2...", base)

        cmd: List[str] = ['hisat2'] + HISAT2_PARAMS + [
            '-p', str(self.config.n_cores),
            '-x', self.config.index
        ]
        if sample.is_paired:
            cmd += ['-1', sample.fq1, '-2', sample.fq2]
        else:
            cmd += ['-U', sample.fq1]
        cmd += ['-S', sam_fpath]

        result: CommandResult = run_command(cmd, self.log_fpath(base, 'hisat2'))
        try:
            self.check_result(result, AlignError, base, 'hisat2 failed')
            if not os.path.isfile(sam_fpath):
                raise AlignError(
                    f"No SAM file found: {sam_fpath}",
                    sample=base, result=result)
        except AlignError:
            self.delete_file_or_dir(sam_fpath)
            raise

        logger.info("Mapped %s", base)
        return sam_fpath

    def post_process(self, sample: SampleUnit, sam_fpath: str
        ) -> AlignmentResult:
        """
        Drops unmapped reads, sorts and indexes the alignments, removes the
        intermediate files and records the number of mapped reads.

        On failure every file of the sample is removed before
        PostProcessError propagates.
        """
        base: str = sample.base
        bam_fpath: str = os.path.join(self.bam_dpath, f'{base}.bam')
        sorted_fpath: str = os.path.join(self.bam_dpath, f'{base}_sorted.bam')
        bai_fpath: str = f'{sorted_fpath}.bai'
        logger.info("Sorting and indexing %s", os.path.basename(bam_fpath))

        try:
            # Get rid of unmapped reads
            result: CommandResult = run_command(
                ['samtools', 'view', '-h', '-b', '-F', '4',
                 '-o', bam_fpath, sam_fpath],
                self.log_fpath(base, 'samtools_view'))
            self.check_result(result, PostProcessError, base,
                'samtools view failed')

            result = run_command(
                ['samtools', 'sort', '-o', sorted_fpath, bam_fpath],
                self.log_fpath(base, 'samtools_sort'))
            self.check_result(result, PostProcessError, base,
                'samtools sort failed')

            result = run_command(
                ['samtools', 'index', sorted_fpath],
                self.log_fpath(base, 'samtools_index'))
            self.check_result(result, PostProcessError, base,
                'samtools index failed')

            for fpath in (sorted_fpath, bai_fpath):
                if not os.path.isfile(fpath):
                    raise PostProcessError(
                        f"Missing samtools output: {fpath}",
                        sample=base, result=result)

            self.delete_file_or_dir(sam_fpath)
            self.delete_file_or_dir(bam_fpath)

            # Extract number of mapped reads
            result = run_command(
                ['samtools', 'view', '-c', sorted_fpath],
                self.log_fpath(base, 'samtools_count'))
            self.check_result(result, PostProcessError, base,
                'samtools view -c failed')
            try:
                mapped_reads: int = int(result.stdout.strip())
            except ValueError:
                raise PostProcessError(
                    f"Unexpected samtools view -c output: {result.stdout!r}",
                    sample=base, result=result)
        except PostProcessError:
            for fpath in (sam_fpath, bam_fpath, sorted_fpath, bai_fpath):
                self.delete_file_or_dir(fpath)
            raise

        self.append_mapped_reads(base, mapped_reads)
        return AlignmentResult(
            sample=sample, sorted_bam=sorted_fpath, mapped_reads=mapped_reads)

    def process_sample(self, sample: SampleUnit) -> AlignmentResult:
        if self.config.trim:
            sample = self.trim(sample)
        sam_fpath: str = self.align(sample)
        return self.post_process(sample, sam_fpath)

    # =========================================================================
    # Counting
    # =========================================================================
    def feature_counts(self, annotation: str, o_fpath: str,
        params: List[str], bams: Sequence[str]) -> pd.DataFrame:
        """ One featureCounts call over all BAMs, returns the matrix """
        step: str = os.path.splitext(os.path.basename(o_fpath))[0]
        cmd: List[str] = [
            'featureCounts',
            '-a', annotation,
            '-o', o_fpath,
            '-T', str(self.config.count_n_cores)
        ] + params + list(bams)

        result: CommandResult = run_command(
            cmd, self.log_fpath('featureCounts', step))
        self.check_result(result, CountError, None,
            f'featureCounts failed for {annotation}')

        if not os.path.isfile(o_fpath):
            raise CountError(
                f"No count matrix found: {o_fpath}", result=result)

        df: pd.DataFrame = read_count_matrix(o_fpath)
        sample_cols: List[str] = [
            c for c in df.columns if c not in COUNT_ANNOTATION_COLS
        ]
        if sorted(sample_cols) != sorted(bams):
            raise CountError(
                f"{o_fpath} columns {sample_cols} do not match the " \
                f"counted BAM files {list(bams)}", result=result)

        logger.info("%s: %d features x %d samples",
            o_fpath, df.shape[0], len(sample_cols))
        return df

    def count_features(self, bams: Sequence[str]) -> List[CountError]:
        """
        Gene and repeat counting. Both are attempted whatever the outcome
        of the other; the errors are returned.
        """
        errors: List[CountError] = []
        logger.info("Counting reads with featureCounts...")

        # Count genes
        try:
            self.feature_counts(
                self.config.gtf, self.gene_counts_fpath,
                GENE_COUNT_PARAMS, bams)
        except CountError as e:
            logger.error("%s", e)
            errors.append(e)

        # Count transposons/repeats
        try:
            self.feature_counts(
                self.config.rmsk_gtf, self.repeat_counts_fpath,
                REPEAT_COUNT_PARAMS, bams)
        except CountError as e:
            logger.error("%s", e)
            errors.append(e)

        return errors

    # =========================================================================
    # Driver
    # =========================================================================
    def run(self) -> RunSummary:
        """
        Runs the whole workflow.

        ConfigError (missing tools, read directory inside an output
        directory) and MissingMateError propagate before
        any output is written. Sample failures are recorded in the returned
        summary and the run moves on to the next sample.
        """
        self.check_input_dir()
        tool_paths: List[str] = check_tools(self.required_tools())
        samples: List[SampleUnit] = list(
            classify_samples(self.config.input_dir, self.config.paired))

        self.prepare_dirs()
        self.write_run_parameters(tool_paths)

        summary: RunSummary = RunSummary()
        logs_map: Dict[str, Dict[str, Any]] = {}

        logger.info("Starting pipeline: %d sample(s) in %s",
            len(samples), self.config.input_dir)
        if not samples:
            logger.warning("No .fastq.gz sample found in %s",
                self.config.input_dir)

        for sample in samples:
            self.append_run_log(f"\n\t{sample.base}")
            s_time: float = time.time()
            d: Dict[str, Any] = {
                'status': 'Ok',
                'note': '',
                'sample_id': sample.base,
                'mode': sample.mode.value,
                'fq1': sample.fq1,
                'fq2': sample.fq2 or '',
                'failed_stage': '',
                'sorted_bam': '',
                'mapped_reads': '',
                'time_in_sec': .0
            }

            try:
                result: AlignmentResult = self.process_sample(sample)
                summary.results.append(result)
                d['sorted_bam'] = result.sorted_bam
                d['mapped_reads'] = result.mapped_reads
            except ToolError as e:
                logger.error("%s", e)
                summary.failures[sample.base] = e
                d['status'] = 'Err'
                d['failed_stage'] = e.stage
                d['note'] = str(e).splitlines()[0]
                self.append_run_log(f"\tFAILED ({e.stage}): {d['note']}")

            d['time_in_sec'] = round(time.time()-s_time, 2)
            logs_map[sample.base] = d

        if summary.results:
            summary.count_errors = self.count_features(summary.sorted_bams)
        else:
            err: CountError = CountError(
                "No sorted BAM file produced, nothing to count")
            logger.error("%s", err)
            summary.count_errors = [err]

        for err in summary.count_errors:
            self.append_run_log(
                f"\n\nCOUNTING FAILED: {str(err).splitlines()[0]}")

        self.append_run_log(
            f"\n\n{datetime.now().strftime('%m-%d-%Y_%H:%M')} Finished: " \
            f"{len(summary.results)} sample(s) ok, " \
            f"{len(summary.failures)} failed\n")
        self.save_logs(logs_map, self.logs_dpath)

        return summary

    def save_logs(self, logs_map: Dict[str, Dict[str, Any]], dpath: str
        ) -> None:
        """ Writes one row per sample to <dpath>/samples.tsv """
        df: pd.DataFrame = pd.DataFrame(list(logs_map.values()))
        df.to_csv(
            os.path.join(dpath, 'samples.tsv'),
            sep='\t',
            encoding='utf-8',
            index=False
        )

    def delete_file_or_dir(self, path: str) -> None:
        """ Removes a file or a directory tree; a missing path is ignored """
        if os.path.isdir(path) and not os.path.islink(path):
            rmtree(path)
        elif os.path.lexists(path):
            os.remove(path)

    def create_dir(self, path: str) -> None:
        os.makedirs(path, exist_ok=True)
