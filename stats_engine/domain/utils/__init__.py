"""
Engine operations over the domain model.

Modules
-------
calendar
    Granularity, the explicit calendar context (timezone, first weekday,
    clock), comparison intervals and timestamp parsing
aggregation
    Bucket reduction (sum / average), dense bucket sequences, period
    processing with zero-filled gaps, and multi-metric site summaries
alignment
    Mapping previous-period values onto current-period dates
ranking
    Merging daily top-list snapshots and ranked-list summary metrics
trends
    Direction, sentiment and percentage of a current vs previous change
"""

__all__ = []
