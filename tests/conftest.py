"""Shared builders for JMeter CSV content."""

from typing import Dict, List, Sequence

import pytest

JMETER_COLUMNS = [
    "timeStamp", "elapsed", "label", "responseCode", "responseMessage", "threadName",
    "dataType", "success", "failureMessage", "bytes", "URL", "Latency", "Connect",
]

BASE_TS = 1_700_000_000_000


def _quote(value) -> str:
    text = str(value)
    if any(c in text for c in ',"'):
        return '"' + text.replace('"', '""') + '"'
    return text


def render_csv(rows: Sequence[Dict[str, object]], columns: Sequence[str] = JMETER_COLUMNS) -> str:
    lines = [",".join(columns)]
    for row in rows:
        lines.append(",".join(_quote(row.get(c, "")) for c in columns))
    return "\n".join(lines) + "\n"


@pytest.fixture
def make_csv():
    return render_csv


@pytest.fixture
def controller_row():
    def _row(label: str, elapsed: int, count: int, success: bool = True,
             ts: int = BASE_TS, thread: str = "Users 1-1") -> Dict[str, object]:
        return {
            "timeStamp": ts,
            "elapsed": elapsed,
            "label": label,
            "responseCode": "200" if success else "",
            "responseMessage": f"Number of samples in transaction : {count}, number of failing samples : 0",
            "threadName": thread,
            "dataType": "",
            "success": "true" if success else "false",
        }
    return _row


@pytest.fixture
def request_row():
    def _row(label: str, elapsed: int = 100, success: bool = True, ts: int = BASE_TS,
             thread: str = "Users 1-1", code: str = "200", message: str = "OK",
             failure: str = "", url: str = "https://app-gifted-qa.azurewebsites.net/api") -> Dict[str, object]:
        return {
            "timeStamp": ts,
            "elapsed": elapsed,
            "label": label,
            "responseCode": code,
            "responseMessage": message,
            "threadName": thread,
            "dataType": "text",
            "success": "true" if success else "false",
            "failureMessage": failure,
            "bytes": 512,
            "URL": url,
            "Latency": elapsed - 10,
            "Connect": 5,
        }
    return _row


@pytest.fixture
def sample_rows(controller_row, request_row) -> List[Dict[str, object]]:
    """Two Login executions and one Search execution, one failing request."""
    return [
        controller_row("Login", 500, 2, ts=BASE_TS),
        request_row("GET /login", 200, ts=BASE_TS),
        request_row("POST /login", 280, ts=BASE_TS + 200),
        controller_row("Search", 900, 1, ts=BASE_TS + 1000),
        request_row("GET /search", 880, success=False, code="500",
                    message="Internal Server Error", failure="Assertion failed", ts=BASE_TS + 1000),
        controller_row("Login", 700, 2, ts=BASE_TS + 5000, thread="Users 1-2"),
        request_row("GET /login", 300, ts=BASE_TS + 5000, thread="Users 1-2"),
        request_row("POST /login", 390, ts=BASE_TS + 5300, thread="Users 1-2"),
    ]
