"""
Data model shared by the JMeter parsing pipeline.

Attribute names are snake_case; ``to_dict`` methods emit the camelCase keys
consumed by the report renderers and the summary JSON.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .stats import ResponseStats, calculate_statistics

CONTROLLER_MARKER = "Number of samples in transaction"
_EXPECTED_COUNT_RE = re.compile(r"Number of samples in transaction\s*:\s*(\d+)")


class SampleKind(Enum):
    CONTROLLER = "controller"
    REQUEST = "request"
    UNCLASSIFIED = "unclassified"


def parse_expected_count(response_message: str) -> int:
    """Child count declared by a transaction controller, 0 when absent."""
    match = _EXPECTED_COUNT_RE.search(response_message or "")
    return int(match.group(1)) if match else 0


def classify(data_type: str, response_message: str, url: str) -> SampleKind:
    if data_type == "" and CONTROLLER_MARKER in (response_message or ""):
        return SampleKind.CONTROLLER
    if data_type != "" or (url and url != "null"):
        return SampleKind.REQUEST
    return SampleKind.UNCLASSIFIED


# =========================
# SAMPLES
# =========================

@dataclass(frozen=True)
class SampleRecord:
    label: str
    elapsed_ms: int
    success: bool
    response_code: str = ""
    response_message: str = ""
    data_type: str = ""
    thread_name: str = ""
    failure_message: str = ""
    latency_ms: int = 0
    connect_ms: int = 0
    bytes: int = 0
    url: str = ""
    timestamp_ms: int = 0
    kind: SampleKind = field(init=False, compare=False)
    expected_count: int = field(init=False, compare=False)

    def __post_init__(self):
        kind = classify(self.data_type, self.response_message, self.url)
        object.__setattr__(self, "kind", kind)
        expected = parse_expected_count(self.response_message) if kind is SampleKind.CONTROLLER else 0
        object.__setattr__(self, "expected_count", expected)

    @property
    def is_controller(self) -> bool:
        return self.kind is SampleKind.CONTROLLER

    @property
    def is_request(self) -> bool:
        return self.kind is SampleKind.REQUEST

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "elapsed": self.elapsed_ms,
            "success": self.success,
            "responseCode": self.response_code,
            "responseMessage": self.response_message,
            "dataType": self.data_type,
            "threadName": self.thread_name,
            "failureMessage": self.failure_message,
            "latency": self.latency_ms,
            "connect": self.connect_ms,
            "bytes": self.bytes,
            "url": self.url,
            "timestamp": self.timestamp_ms,
        }


@dataclass(frozen=True)
class ErrorRecord:
    label: str
    response_code: str
    response_message: str
    failure_message: str

    @classmethod
    def from_sample(cls, sample: SampleRecord) -> "ErrorRecord":
        return cls(
            label=sample.label,
            response_code=sample.response_code,
            response_message=sample.response_message,
            failure_message=sample.failure_message,
        )


# =========================
# TRANSACTIONS
# =========================

@dataclass
class TransactionExecution:
    index: int
    controller: SampleRecord
    expected_count: int
    children: List[SampleRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "controller": self.controller.to_dict(),
            "expectedCount": self.expected_count,
            "children": [c.to_dict() for c in self.children],
        }


@dataclass
class TransactionGroup:
    """All executions of one named transaction controller."""

    name: str
    executions: List[TransactionExecution] = field(default_factory=list)
    child_requests: List[SampleRecord] = field(default_factory=list)
    stats: ResponseStats = field(default_factory=ResponseStats)
    error_rate: float = 0.0
    unique_child_requests: List[SampleRecord] = field(default_factory=list)

    @property
    def total_samples(self) -> int:
        return len(self.executions)

    @property
    def success_count(self) -> int:
        return sum(1 for e in self.executions if e.controller.success)

    @property
    def error_count(self) -> int:
        return self.total_samples - self.success_count

    def add_execution(self, controller: SampleRecord) -> TransactionExecution:
        execution = TransactionExecution(
            index=len(self.executions),
            controller=controller,
            expected_count=controller.expected_count,
        )
        self.executions.append(execution)
        return execution

    def capture_child(self, execution_index: int, sample: SampleRecord) -> None:
        self.executions[execution_index].children.append(sample)
        self.child_requests.append(sample)

    def finalize(self) -> None:
        self.stats = calculate_statistics([e.controller.elapsed_ms for e in self.executions])
        if self.executions:
            self.error_rate = round(self.error_count / self.total_samples * 100, 2)
        else:
            self.error_rate = 0.0

        seen = set()
        unique = []
        for request in self.child_requests:
            if request.label not in seen:
                seen.add(request.label)
                unique.append(request)
        self.unique_child_requests = unique

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "totalSamples": self.total_samples,
            "successCount": self.success_count,
            "errorCount": self.error_count,
            "stats": self.stats.to_dict(),
            "errorRate": self.error_rate,
            "executions": [e.to_dict() for e in self.executions],
            "uniqueChildRequests": [r.to_dict() for r in self.unique_child_requests],
        }


# =========================
# AGGREGATED RESULT
# =========================

@dataclass
class AggregatedResult:
    controllers: List[SampleRecord]
    transactions: Dict[str, TransactionGroup]
    samples: List[SampleRecord]
    start_timestamp: int
    end_timestamp: int
    user_config: Dict[str, Any]
    total_success_count: int
    total_error_count: int
    error_analysis: Dict[str, Any]
    start_time: str = ""
    end_time: str = ""
    timezone: str = ""

    @property
    def total_samples(self) -> int:
        return len(self.controllers)

    @property
    def total_requests(self) -> int:
        return self.total_success_count + self.total_error_count

    @property
    def pass_percentage(self) -> float:
        if self.total_requests == 0:
            return 100.0
        return round(self.total_success_count / self.total_requests * 100, 2)

    @property
    def test_duration_sec(self) -> int:
        return int(round((self.end_timestamp - self.start_timestamp) / 1000.0))

    @property
    def test_duration_formatted(self) -> str:
        minutes, seconds = divmod(self.test_duration_sec, 60)
        return f"{minutes}m {seconds}s"

    def transaction(self, name: str) -> Optional[TransactionGroup]:
        return self.transactions.get(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalSamples": self.total_samples,
            "transactions": {name: g.to_dict() for name, g in self.transactions.items()},
            "testDuration": self.test_duration_sec,
            "testDurationFormatted": self.test_duration_formatted,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "startTimestamp": self.start_timestamp,
            "endTimestamp": self.end_timestamp,
            "timezone": self.timezone,
            "userConfig": dict(self.user_config),
            "passPercentage": self.pass_percentage,
            "totalRequests": self.total_requests,
            "totalSuccessCount": self.total_success_count,
            "totalErrorCount": self.total_error_count,
            "errorAnalysis": self.error_analysis,
        }
