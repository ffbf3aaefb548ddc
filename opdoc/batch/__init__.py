"""Batch execution across many operation documents."""

from opdoc.batch.driver import BatchDriver
from opdoc.batch.sources import DOCUMENT_SUFFIXES, collect_sources

__all__ = ["DOCUMENT_SUFFIXES", "BatchDriver", "collect_sources"]
