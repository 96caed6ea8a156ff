#!/usr/bin/python3
# -*- coding: utf-8 -*-
"""
Created on Mon Oct 19 10:02:03 2026

@author: hisat2-pipeline developers

Basic pipeline for mapping and counting single/paired end reads using hisat2
"""

""" Resources """
import sys

from hisatpipe.pipeline import main

if __name__ == '__main__':

    sys.exit(main())
