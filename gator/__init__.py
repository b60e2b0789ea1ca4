"""
Gator: a small RSS aggregator that ingests one feed per tick into SQL storage.
"""
from __future__ import annotations

__version__ = "0.1.0"
