"""Target sources for loading signup URLs."""

from .csv_parser import CSVParser

__all__ = ['CSVParser']
