"""readqc: asynchronous quality-control metrics for FASTQ read files."""

__version__ = "0.1.0"
