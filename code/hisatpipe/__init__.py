"""
hisat2 mapping and counting pipeline for single/paired end RNA-seq reads.
"""

__version__ = '0.1.0'
