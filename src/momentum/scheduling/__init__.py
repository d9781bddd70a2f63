"""
Scheduling
==========

Timezone handling for user- and AI-supplied times.
"""

from momentum.scheduling.timezone import (
    DEFAULT_TIMEZONE,
    NormalizedTimestamp,
    create_date_in_timezone,
    format_for_graph_api,
    format_utc_to_local,
    get_timezone_abbreviation,
    get_timezone_offset,
    normalize_ai_timestamp,
    normalize_timezone,
    parse_local_time_to_utc,
    to_iso_z,
)

__all__ = [
    "DEFAULT_TIMEZONE",
    "NormalizedTimestamp",
    "create_date_in_timezone",
    "format_for_graph_api",
    "format_utc_to_local",
    "get_timezone_abbreviation",
    "get_timezone_offset",
    "normalize_ai_timestamp",
    "normalize_timezone",
    "parse_local_time_to_utc",
    "to_iso_z",
]
