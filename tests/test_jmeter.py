import json
import re

import pytest

from unified_report.config import PathSettings, build_config
from unified_report.jmeter import (
    find_jmeter_csv,
    format_timestamp,
    parse_int,
    parse_jmeter_csv_text,
    parse_jmeter_results,
)

BASE_TS = 1_700_000_000_000


@pytest.fixture
def csv_text(make_csv, sample_rows):
    return make_csv(sample_rows)


def test_login_transaction_scenario(make_csv):
    text = make_csv(
        [
            {"label": "Login", "elapsed": 500, "success": "true", "responseCode": "200",
             "responseMessage": "Number of samples in transaction : 1", "dataType": "",
             "threadName": "Login 1-1", "timeStamp": BASE_TS},
            {"label": "POST /login", "elapsed": 480, "success": "true", "responseCode": "200",
             "responseMessage": "OK", "dataType": "text", "threadName": "Login 1-1",
             "timeStamp": BASE_TS + 10},
        ],
        columns=["label", "elapsed", "success", "responseCode", "responseMessage", "dataType",
                 "threadName", "timeStamp"],
    )

    result = parse_jmeter_csv_text(text)

    login = result.transaction("Login")
    assert login.total_samples == 1
    assert [c.label for c in login.executions[0].children] == ["POST /login"]
    assert login.stats.avg == 500
    assert result.total_samples == 1


def test_full_run(csv_text):
    result = parse_jmeter_csv_text(csv_text)

    assert list(result.transactions) == ["Login", "Search"]
    login = result.transactions["Login"]
    assert login.total_samples == 2
    assert login.stats.avg == 600
    assert [r.label for r in login.unique_child_requests] == ["GET /login", "POST /login"]

    search = result.transactions["Search"]
    assert search.error_rate == 0.0
    assert search.executions[0].children[0].response_code == "500"

    assert result.start_timestamp == BASE_TS
    assert result.end_timestamp == BASE_TS + 5700
    assert result.test_duration_sec == 6
    assert result.test_duration_formatted == "0m 6s"
    assert result.user_config["environment"] == "QA"


def test_success_and_error_tallies(csv_text):
    result = parse_jmeter_csv_text(csv_text)

    # controllers count towards successes, failed controllers never count as errors
    assert result.total_success_count == 7
    assert result.total_error_count == 1
    assert result.total_requests == 8
    assert result.pass_percentage == 87.5
    assert result.error_analysis["totalErrors"] == 1
    assert result.error_analysis["topErrorsBySampler"][0]["message"] == "Assertion failed"


def test_failed_controller_is_not_an_error(make_csv, controller_row, request_row):
    result = parse_jmeter_csv_text(make_csv([
        controller_row("Login", 900, 1, success=False),
        request_row("POST /login", success=False, code="401", message="Unauthorized"),
    ]))

    assert result.total_success_count == 0
    assert result.total_error_count == 1
    assert result.transactions["Login"].error_rate == 100.0
    assert result.error_analysis["errorsByType"]["401"]["message"] == "Unauthorized"


@pytest.mark.parametrize("text", ["", "\n\n", "label,elapsed\n", "label,elapsed\n\n  \n"])
def test_no_data_rows(text):
    assert parse_jmeter_csv_text(text) is None


@pytest.mark.parametrize("header", ["label,success", "elapsed,success", "timeStamp,Label,Elapsed"])
def test_missing_required_columns(header):
    assert parse_jmeter_csv_text(header + "\nLogin,true\n") is None


def test_short_rows_are_skipped():
    text = "label,elapsed,success\nLogin\nGET /,120,true\n"
    result = parse_jmeter_csv_text(text)
    assert len(result.samples) == 1
    assert result.samples[0].label == "GET /"


def test_missing_optional_columns_default():
    result = parse_jmeter_csv_text("label,elapsed\nSomething,42\n")
    sample = result.samples[0]
    assert sample.elapsed_ms == 42
    assert sample.success is False
    assert sample.response_code == ""
    assert sample.timestamp_ms == 0
    assert result.start_timestamp == 0
    assert result.pass_percentage == 100.0


def test_byte_order_mark_and_crlf(csv_text):
    plain = parse_jmeter_csv_text(csv_text)
    windows = parse_jmeter_csv_text("\ufeff" + csv_text.replace("\n", "\r\n"))
    assert windows.to_dict() == plain.to_dict()


def test_parsing_is_repeatable(csv_text):
    assert parse_jmeter_csv_text(csv_text).to_dict() == parse_jmeter_csv_text(csv_text).to_dict()


def test_result_is_json_serializable(csv_text):
    data = json.loads(json.dumps(parse_jmeter_csv_text(csv_text).to_dict()))
    assert data["totalSamples"] == 3
    assert data["transactions"]["Login"]["executions"][1]["index"] == 1
    assert data["transactions"]["Login"]["executions"][0]["expectedCount"] == 2


@pytest.mark.parametrize(("value", "expected"), [("42", 42), (" 7ms", 7), ("-3", -3), ("", 0), ("abc", 0), ("1.9", 1)])
def test_parse_int(value, expected):
    assert parse_int(value) == expected


def test_format_timestamp_shape():
    assert re.match(r"^[A-Z][a-z]{2} \d{1,2}, \d{4}, \d{2}:\d{2}:\d{2} (AM|PM)$", format_timestamp(BASE_TS))


def test_find_csv_in_alternative_directory(tmp_path):
    alt = tmp_path / "unified-report" / "jmeter"
    alt.mkdir(parents=True)
    (alt / "b.csv").write_text("x", encoding="utf-8")
    (alt / "a.csv").write_text("x", encoding="utf-8")
    (alt / "notes.txt").write_text("x", encoding="utf-8")

    location = find_jmeter_csv(str(tmp_path), PathSettings())

    assert location.csv_path == str(alt / "a.csv")
    assert location.directory == str(alt)


def test_find_csv_none(tmp_path):
    assert find_jmeter_csv(str(tmp_path), PathSettings()) is None


def test_parse_results_from_artifacts(tmp_path, csv_text):
    jmeter_dir = tmp_path / "jmeter"
    jmeter_dir.mkdir()
    (jmeter_dir / "results.csv").write_text(csv_text, encoding="utf-8")

    result = parse_jmeter_results(str(tmp_path), build_config(environ={}))

    assert result.total_samples == 3


def test_parse_results_missing(tmp_path):
    config = build_config(environ={})
    assert parse_jmeter_results(str(tmp_path), config) is None
    assert parse_jmeter_results(str(tmp_path), config, csv_path=str(tmp_path / "gone.csv")) is None


def test_parse_results_uses_jmx_thread_groups(tmp_path, make_csv, request_row):
    (tmp_path / "plan.jmx").write_text(
        '<jmeterTestPlan><hashTree><ThreadGroup testname="Analyst Journey"/></hashTree></jmeterTestPlan>',
        encoding="utf-8",
    )
    csv_path = tmp_path / "results.csv"
    csv_path.write_text(make_csv([
        request_row("GET /", thread="Analyst Journey 1-1"),
        request_row("GET /", thread="Analyst Journey 1-4"),
    ]), encoding="utf-8")
    config = build_config({
        "jmxFile": {"path": str(tmp_path / "plan.jmx")},
        "userTypes": [{"key": "analysts", "threadGroupPatterns": ["nope"], "jmxThreadGroupNames": ["Analyst"]}],
    }, environ={})

    result = parse_jmeter_results(str(tmp_path), config, csv_path=str(csv_path))

    assert result.user_config["analysts"] == 4


def test_out_of_range_timestamp_is_reported_as_invalid_date():
    result = parse_jmeter_csv_text("label,elapsed,success,timeStamp\nGET /,10,true,99999999999999999\n")

    assert result.start_timestamp == 99999999999999999
    assert result.start_time == "Invalid Date"
    assert result.end_time == "Invalid Date"
    assert result.timezone == ""
    assert format_timestamp(-(10 ** 18)) == "Invalid Date"


def test_only_newlines_end_rows():
    text = 'label,elapsed,success,failureMessage,dataType\nGET /,10,false,"bad\x0cvalue here",text\n'

    result = parse_jmeter_csv_text(text)

    assert len(result.samples) == 1
    assert result.samples[0].failure_message == "bad\x0cvalue here"
    assert result.total_error_count == 1
