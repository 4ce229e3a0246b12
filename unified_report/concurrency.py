"""
Virtual-user inference from JMeter thread names.

JMeter names threads ``<group name> <group no>-<thread no>`` (or
``<group name>-<thread no>``) and numbers threads from 1 inside each group,
so the largest trailing number of a group is its configured thread count.
When thread names carry no number at all, distinct users are estimated from
gaps in the sample timestamps.
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .config import DEFAULT_URL_PATTERN, ThreadCounting, UserType, default_user_types
from .models import SampleRecord

logger = logging.getLogger(__name__)

DEFAULT_RAMP_UP_WINDOW_MS = 10000
DEFAULT_EXECUTION_GAP_MS = 30000

_GROUP_RE = re.compile(r"^(.+?)\s*\d+-\d+$")
_DASH_NUMBER_RE = re.compile(r"-(\d+)$")
_SPACE_NUMBER_RE = re.compile(r"\s+(\d+)$")


def thread_number(thread_name: str) -> Optional[int]:
    """Trailing thread number of ``thread_name`` or None."""
    match = _DASH_NUMBER_RE.search(thread_name) or _SPACE_NUMBER_RE.search(thread_name)
    return int(match.group(1)) if match else None


def thread_group_of(thread_name: str) -> str:
    match = _GROUP_RE.match(thread_name)
    return match.group(1).strip() if match else thread_name


def matching_samples(samples: Sequence[SampleRecord], needles: Sequence[str]) -> List[SampleRecord]:
    return [
        s for s in samples
        if s.thread_name and any(needle in s.thread_name for needle in needles)
    ]


def _count_by_group(thread_names: Sequence[str]) -> Optional[int]:
    """Sum of per-group thread counts, or None when only one group exists."""
    by_group: Dict[str, List[str]] = {}
    for name in thread_names:
        by_group.setdefault(thread_group_of(name), []).append(name)

    if len(by_group) <= 1:
        return None

    total = 0
    for names in by_group.values():
        numbers = [n for n in (thread_number(name) for name in names) if n is not None]
        total += max(numbers) if numbers else len(names)
    return total


def _count_by_timing(samples: Sequence[SampleRecord], ramp_up_window_ms: int, execution_gap_ms: int) -> int:
    ordered = sorted(samples, key=lambda s: s.timestamp_ms)

    first_timestamps: List[int] = []
    last_timestamp = 0
    for sample in ordered:
        if not first_timestamps or sample.timestamp_ms - last_timestamp > execution_gap_ms:
            first_timestamps.append(sample.timestamp_ms)
        last_timestamp = sample.timestamp_ms

    # starts within one ramp-up window are the same wave of threads
    windows = {ts // ramp_up_window_ms for ts in first_timestamps}
    return len(windows)


def count_thread_instances(samples: Sequence[SampleRecord],
                           user_type: UserType,
                           group_names: Optional[Sequence[str]] = None,
                           ramp_up_window_ms: int = DEFAULT_RAMP_UP_WINDOW_MS,
                           execution_gap_ms: int = DEFAULT_EXECUTION_GAP_MS) -> int:
    """
    Number of concurrent virtual users that ran as ``user_type``.

    ``group_names`` are exact thread-group names taken from the JMX plan; when
    given they take priority over the user type's substring patterns.
    """
    if ramp_up_window_ms <= 0:
        ramp_up_window_ms = DEFAULT_RAMP_UP_WINDOW_MS
    if execution_gap_ms <= 0:
        execution_gap_ms = DEFAULT_EXECUTION_GAP_MS

    needles = list(group_names) if group_names else user_type.patterns
    matched = matching_samples(samples, needles)
    if not matched:
        return 0

    unique_names = list(dict.fromkeys(s.thread_name for s in matched))

    grouped_total = _count_by_group(unique_names)
    if grouped_total is not None:
        return grouped_total

    numbers = [n for n in (thread_number(name) for name in unique_names) if n is not None]
    if numbers:
        return max(numbers)

    if len(unique_names) > 1:
        return len(unique_names)

    windows = _count_by_timing(matched, ramp_up_window_ms, execution_gap_ms)
    return max(windows, len(unique_names), 1)


def extract_environment(samples: Sequence[SampleRecord], url_pattern: str = DEFAULT_URL_PATTERN) -> str:
    """Environment token from the first matching azurewebsites.net URL."""
    env_re = re.compile(url_pattern)
    for sample in samples:
        if sample.url and "azurewebsites.net" in sample.url:
            match = env_re.search(sample.url)
            if match and match.groups() and match.group(1):
                return match.group(1).upper()
    return "Unknown"


def extract_user_configuration(samples: Sequence[SampleRecord],
                               user_types: Optional[Sequence[UserType]] = None,
                               thread_group_map: Optional[Mapping[str, Sequence[str]]] = None,
                               thread_counting: Optional[ThreadCounting] = None,
                               url_pattern: str = DEFAULT_URL_PATTERN) -> Dict[str, Any]:
    """Environment name plus inferred thread count for every user type."""
    user_types = default_user_types() if user_types is None else list(user_types)
    thread_counting = thread_counting or ThreadCounting()

    result: Dict[str, Any] = {"environment": "Unknown"}
    for user_type in user_types:
        result[user_type.key] = 0

    if not samples:
        return result

    for user_type in user_types:
        group_names = thread_group_map.get(user_type.key) if thread_group_map else None
        result[user_type.key] = count_thread_instances(
            samples,
            user_type,
            group_names,
            ramp_up_window_ms=thread_counting.ramp_up_window_ms,
            execution_gap_ms=thread_counting.execution_gap_ms,
        )
        logger.debug("User type %s: %d threads", user_type.key, result[user_type.key])

    result["environment"] = extract_environment(samples, url_pattern)
    return result
