"""Wharf lands external file batches and coordinates their downstream consumption."""

__version__ = "0.1.0"
