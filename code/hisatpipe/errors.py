#!/usr/bin/python3
# -*- coding: utf-8 -*-
"""
Created on Mon Oct 19 10:14:03 2026

@author: hisat2-pipeline developers

Pipeline exceptions.

ConfigError and MissingMateError are raised before any tool is launched and
abort the whole run. ToolError subclasses wrap a failed external call and
only abort the sample (or the counting step) they belong to.
"""

from typing import Optional


class PipelineError(Exception):
    """ Base class of every pipeline error """


class ConfigError(PipelineError):
    """ Bad or missing command line arguments """


class MissingMateError(PipelineError):

    def __init__(self, base: str, fq1: str, fq2: str):
        self.base: str = base
        self.fq1: str = fq1
        self.fq2: str = fq2
        super().__init__(
            f"No reverse mate found for {base}: expected {fq2} next to {fq1}")


class ToolError(PipelineError):

    stage: str = 'tool'

    def __init__(self, message: str, sample: Optional[str] = None,
        result=None):
        """
        Arguments:
        -----------
        - message: Human readable description of the failure.
        - sample: Sample base name, None for run-wide steps.
        - result: The CommandResult of the failed call, if any.
        """
        self.sample: Optional[str] = sample
        self.result = result
        super().__init__(message)

    def __str__(self) -> str:
        msg: str = super().__str__()
        if self.sample:
            msg = f"[{self.stage}] {self.sample}: {msg}"
        else:
            msg = f"[{self.stage}] {msg}"
        if self.result is not None and self.result.stderr_tail():
            msg = f"{msg}\n{self.result.stderr_tail()}"
        return msg


class TrimError(ToolError):
    stage = 'trim'


class AlignError(ToolError):
    stage = 'align'


class PostProcessError(ToolError):
    stage = 'post_process'


class CountError(ToolError):
    stage = 'count'
