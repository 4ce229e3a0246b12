import pytest

from unified_report.csv_line import parse_csv_line


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("a,b,c", ["a", "b", "c"]),
        ("", [""]),
        ("a,", ["a", ""]),
        (",,", ["", "", ""]),
        ('"x,y",z', ["x,y", "z"]),
        ('"a,""b"",c"', ['a,"b",c']),
        ('""', [""]),
        ('ab"c,d"e', ["abc,de"]),
    ],
)
def test_splits_fields(line, expected):
    assert parse_csv_line(line) == expected


def test_unterminated_quote_runs_to_end_of_line():
    assert parse_csv_line('a,"b,c') == ["a", "b,c"]


def test_controller_message_with_comma_stays_one_field():
    line = '1,500,Login,200,"Number of samples in transaction : 2, number of failing samples : 0",T 1-1,,true'
    fields = parse_csv_line(line)
    assert len(fields) == 8
    assert fields[4] == "Number of samples in transaction : 2, number of failing samples : 0"
