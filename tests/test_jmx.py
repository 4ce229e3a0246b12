import pytest

from unified_report.config import UserType
from unified_report.jmx import parse_jmx_thread_groups, resolve_jmx_path, thread_group_names

PLAN = """<?xml version="1.0" encoding="UTF-8"?>
<jmeterTestPlan version="1.2" properties="5.0">
  <hashTree>
    <TestPlan guiclass="TestPlanGui" testclass="TestPlan" testname="Load Plan"/>
    <hashTree>
      <ThreadGroup guiclass="ThreadGroupGui" testclass="ThreadGroup" testname="District Coordinator Flow" enabled="true"/>
      <hashTree/>
      <ThreadGroup guiclass="ThreadGroupGui" testclass="ThreadGroup" testname="School User Flow" enabled="true"/>
      <hashTree/>
      <ThreadGroup guiclass="ThreadGroupGui" testclass="ThreadGroup" testname="Smoke"/>
      <hashTree/>
    </hashTree>
  </hashTree>
</jmeterTestPlan>
"""

USER_TYPES = [
    UserType("districtCoordinators", "District Coordinators", [], ["District Coordinator"]),
    UserType("schoolUsers", "School Users", [], ["School User"]),
    UserType("admins", "Admins"),
]


@pytest.fixture
def plan(tmp_path):
    path = tmp_path / "plan.jmx"
    path.write_text(PLAN, encoding="utf-8")
    return path


def test_thread_group_names(plan):
    assert thread_group_names(str(plan)) == ["District Coordinator Flow", "School User Flow", "Smoke"]


def test_maps_groups_to_user_types(plan):
    assert parse_jmx_thread_groups(str(plan), USER_TYPES) == {
        "districtCoordinators": ["District Coordinator Flow"],
        "schoolUsers": ["School User Flow"],
        "admins": [],
    }


def test_missing_plan(tmp_path):
    assert parse_jmx_thread_groups(str(tmp_path / "absent.jmx"), USER_TYPES) is None
    assert parse_jmx_thread_groups(None, USER_TYPES) is None


def test_malformed_plan(tmp_path):
    path = tmp_path / "broken.jmx"
    path.write_text("<jmeterTestPlan><hashTree>", encoding="utf-8")
    assert parse_jmx_thread_groups(str(path), USER_TYPES) is None


def test_resolve_relative_path(tmp_path, plan):
    other = tmp_path / "other"
    other.mkdir()
    assert resolve_jmx_path("plan.jmx", [str(other), str(tmp_path)]) == str(tmp_path / "plan.jmx")
    assert resolve_jmx_path("nope.jmx", [str(tmp_path)]) is None
    assert resolve_jmx_path(str(plan), []) == str(plan)
    assert resolve_jmx_path("", [str(tmp_path)]) is None
