"""
JMeter CSV results -> AggregatedResult.

One forward pass over the rows feeds the transaction scanner and the run
totals; concurrency and error analysis run over the collected samples
afterwards.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from .concurrency import extract_user_configuration
from .config import PathSettings, ReportConfig
from .csv_line import parse_csv_line
from .error_analysis import analyze_errors
from .jmx import parse_jmx_thread_groups, resolve_jmx_path
from .models import AggregatedResult, ErrorRecord, SampleRecord
from .transactions import TransactionScanner

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("label", "elapsed")

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


@dataclass
class CsvLocation:
    csv_path: str
    directory: str


# =========================
# FILE DISCOVERY
# =========================

def resolve_path(config_path: Optional[str], artifacts_dir: str) -> Optional[str]:
    if not config_path:
        return None
    if os.path.isabs(config_path):
        return config_path
    return os.path.join(artifacts_dir, config_path)


def candidate_dirs(artifacts_dir: str, primary: Optional[str], alternatives: Sequence[str]) -> List[str]:
    dirs: List[str] = []
    for entry in [primary, *alternatives]:
        resolved = resolve_path(entry, artifacts_dir)
        if resolved and resolved not in dirs:
            dirs.append(resolved)
    return dirs


def find_jmeter_csv(artifacts_dir: str, paths: PathSettings) -> Optional[CsvLocation]:
    """First CSV file found in the configured JMeter directories."""
    for directory in candidate_dirs(artifacts_dir, paths.jmeter_csv_path, paths.jmeter_csv_alternatives):
        if not os.path.isdir(directory):
            continue
        csv_files = sorted(f for f in os.listdir(directory) if f.lower().endswith(".csv"))
        if csv_files:
            return CsvLocation(csv_path=os.path.join(directory, csv_files[0]), directory=directory)
    return None


# =========================
# ROW PARSING
# =========================

def parse_int(value: str) -> int:
    """Leading integer of ``value``; 0 when there is none."""
    match = _LEADING_INT_RE.match(value or "")
    return int(match.group(1)) if match else 0


class ColumnIndex:
    """Header positions by exact column name."""

    def __init__(self, headers: Sequence[str]):
        self.positions: Dict[str, int] = {}
        for i, name in enumerate(headers):
            self.positions.setdefault(name, i)

    def has(self, name: str) -> bool:
        return name in self.positions

    def min_width(self) -> int:
        return max(self.positions[c] for c in REQUIRED_COLUMNS) + 1

    def get(self, values: Sequence[str], name: str) -> str:
        i = self.positions.get(name)
        if i is None or i >= len(values):
            return ""
        return values[i]


def sample_from_row(values: Sequence[str], columns: ColumnIndex) -> SampleRecord:
    return SampleRecord(
        label=columns.get(values, "label"),
        elapsed_ms=parse_int(columns.get(values, "elapsed")),
        success=columns.get(values, "success") == "true",
        response_code=columns.get(values, "responseCode"),
        response_message=columns.get(values, "responseMessage"),
        data_type=columns.get(values, "dataType"),
        thread_name=columns.get(values, "threadName"),
        failure_message=columns.get(values, "failureMessage"),
        latency_ms=parse_int(columns.get(values, "Latency")),
        connect_ms=parse_int(columns.get(values, "Connect")),
        bytes=parse_int(columns.get(values, "bytes")),
        url=columns.get(values, "URL"),
        timestamp_ms=parse_int(columns.get(values, "timeStamp")),
    )


@dataclass
class RunTotals:
    """Run-wide figures gathered during the scan."""

    min_timestamp: Optional[int] = None
    max_timestamp: int = 0
    success_count: int = 0
    error_count: int = 0
    errors: List[ErrorRecord] = field(default_factory=list)

    def observe(self, sample: SampleRecord) -> None:
        if sample.timestamp_ms > 0:
            if self.min_timestamp is None or sample.timestamp_ms < self.min_timestamp:
                self.min_timestamp = sample.timestamp_ms
            self.max_timestamp = max(self.max_timestamp, sample.timestamp_ms + sample.elapsed_ms)

        # Errors count request rows only; successes count every successful row,
        # controllers included.
        if not sample.success and sample.is_request:
            self.errors.append(ErrorRecord.from_sample(sample))
            self.error_count += 1
        elif sample.success:
            self.success_count += 1


# =========================
# TIME FORMATTING
# =========================

INVALID_DATE = "Invalid Date"


def _local_datetime(ts_ms: int) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(ts_ms / 1000).astimezone()
    except (OverflowError, OSError, ValueError):
        return None


def format_timestamp(ts_ms: int) -> str:
    """Local time as ``Mar 5, 2025, 02:04:05 PM``; ``Invalid Date`` when out of range."""
    dt = _local_datetime(ts_ms)
    if dt is None:
        return INVALID_DATE
    return f"{dt:%b} {dt.day}, {dt.year}, {dt:%I:%M:%S %p}"


def timezone_abbreviation(ts_ms: int) -> str:
    local = _local_datetime(ts_ms)
    if local is None:
        return ""
    name = local.tzname()
    if name:
        return name
    offset = local.utcoffset()
    hours = offset.total_seconds() / 3600 if offset else 0
    return "UTC" if hours == 0 else f"UTC{hours:+g}"


# =========================
# PARSING
# =========================

def parse_jmeter_csv_text(text: str,
                          config: Optional[ReportConfig] = None,
                          thread_group_map: Optional[Dict[str, List[str]]] = None) -> Optional[AggregatedResult]:
    """
    Parse JMeter CSV content into an AggregatedResult.

    Returns None when the content has no data rows or lacks the ``label`` or
    ``elapsed`` columns. Rows too short to reach those columns are skipped.
    """
    config = config or ReportConfig()
    lines = [line.rstrip("\r") for line in text.lstrip("\ufeff").split("\n")]
    lines = [line for line in lines if line.strip()]
    if len(lines) < 2:
        logger.warning("JMeter CSV is empty")
        return None

    columns = ColumnIndex(parse_csv_line(lines[0]))
    missing = [c for c in REQUIRED_COLUMNS if not columns.has(c)]
    if missing:
        logger.warning("Invalid JMeter CSV format: missing column(s) %s", ", ".join(missing))
        return None

    min_width = columns.min_width()
    scanner = TransactionScanner()
    totals = RunTotals()
    samples: List[SampleRecord] = []

    for line in lines[1:]:
        values = parse_csv_line(line)
        if len(values) < min_width:
            continue
        sample = sample_from_row(values, columns)
        samples.append(sample)
        totals.observe(sample)
        scanner.feed(sample)

    transactions = scanner.finish()
    logger.info("Parsed %d transaction controllers", len(scanner.controllers))
    logger.info("Identified %d unique transactions", len(transactions))
    logger.debug(
        "Captured %d unique API samplers across all transactions",
        sum(len(t.unique_child_requests) for t in transactions.values()),
    )

    user_config = extract_user_configuration(
        samples,
        config.user_types,
        thread_group_map,
        config.thread_counting,
        config.environment.url_pattern,
    )

    start = totals.min_timestamp or 0
    end = totals.max_timestamp
    result = AggregatedResult(
        controllers=scanner.controllers,
        transactions=transactions,
        samples=samples,
        start_timestamp=start,
        end_timestamp=end,
        user_config=user_config,
        total_success_count=totals.success_count,
        total_error_count=totals.error_count,
        error_analysis=analyze_errors(totals.errors),
        start_time=format_timestamp(start),
        end_time=format_timestamp(end),
        timezone=timezone_abbreviation(start),
    )

    logger.info("Test duration: %s (%ds total)", result.test_duration_formatted, result.test_duration_sec)
    logger.info(
        "Success rate: %.2f%% (%d/%d requests)",
        result.pass_percentage, result.total_success_count, result.total_requests,
    )
    if result.total_error_count:
        logger.info("Total errors: %d", result.total_error_count)
    return result


def load_thread_group_map(config: ReportConfig, artifacts_dir: str) -> Optional[Dict[str, List[str]]]:
    if not config.jmx_file.path:
        return None
    roots = [os.getcwd(), artifacts_dir, os.path.dirname(os.path.abspath(artifacts_dir))]
    jmx_path = resolve_jmx_path(config.jmx_file.path, roots)
    if jmx_path is None:
        logger.warning("JMX file not found: %s; using thread name patterns", config.jmx_file.path)
        return None
    return parse_jmx_thread_groups(jmx_path, config.user_types)


def parse_jmeter_results(artifacts_dir: str,
                         config: ReportConfig,
                         csv_path: Optional[str] = None) -> Optional[AggregatedResult]:
    """Locate, read and parse the JMeter CSV for a run; None when unavailable."""
    if csv_path is None:
        location = find_jmeter_csv(artifacts_dir, config.paths)
        if location is None:
            logger.warning(
                "No JMeter CSV file found (checked %s)",
                ", ".join(candidate_dirs(artifacts_dir, config.paths.jmeter_csv_path,
                                         config.paths.jmeter_csv_alternatives)),
            )
            return None
        csv_path = location.csv_path

    logger.info("Found JMeter CSV: %s", os.path.basename(csv_path))
    try:
        with open(csv_path, "r", newline="", encoding="utf-8", errors="ignore") as f:
            text = f.read()
    except OSError as e:
        logger.error("Error reading JMeter results %s: %s", csv_path, e)
        return None

    return parse_jmeter_csv_text(text, config, load_thread_group_map(config, artifacts_dir))
