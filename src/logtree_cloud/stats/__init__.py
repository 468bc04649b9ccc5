"""Log frequency statistics, insights, and histograms."""

from logtree_cloud.stats.cache import LogPoint, StatsCache, get_logs_for_window
from logtree_cloud.stats.engine import (
    FolderInsight,
    Histogram,
    HistogramBox,
    Insights,
    TimeInterval,
    get_histograms_for_folder,
    get_insights,
    get_log_frequencies_by_interval,
    get_percent_change_in_frequency_of_most_recent_logs,
    percent_change_from_frequencies,
)

__all__ = [
    "FolderInsight",
    "Histogram",
    "HistogramBox",
    "Insights",
    "LogPoint",
    "StatsCache",
    "TimeInterval",
    "get_histograms_for_folder",
    "get_insights",
    "get_log_frequencies_by_interval",
    "get_logs_for_window",
    "get_percent_change_in_frequency_of_most_recent_logs",
    "percent_change_from_frequencies",
]
