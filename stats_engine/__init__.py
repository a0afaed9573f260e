"""
Stats engine Python package.

This package hosts the stats aggregation and ranking engine: time-bucketed
series aggregation, period alignment, top-list merging and ranked-list
metrics, plus a thin HTTP/CLI surface over them.
"""

from .__version__ import __data_model_version__, __version__

__all__ = ["__version__", "__data_model_version__"]
