"""Unit tests for sources/plan.py"""

from datetime import datetime

import pytest
import yaml

from docsync.core.models import SideChannel
from docsync.sources.plan import PlanTask, TaskPlan


PLAN_YAML = """\
tasks:
  - name: Release 1
    outline_level: 1
    text1: Spira-RQ4
    text2: 2024-01-01T09:00:01.000
  - name: Build login
    outline_level: 2
    start: 2024-02-01
    finish: 2024-02-03 17:00:00
    work: 16
    percent_complete: 50
  - name: Ship
    outline_level: 2
    milestone: true
"""


@pytest.fixture(name="plan_file")
def plan_file_fixture(tmp_path):
    path = tmp_path / "plan.yaml"
    path.write_text(PLAN_YAML)
    return path


def test_load_reads_tasks_and_side_channel(plan_file):
    plan = TaskPlan.load(plan_file)
    first, second, third = plan.tasks
    assert first.channel == SideChannel("Spira-RQ4", "2024-01-01T09:00:01.000")
    assert second.start == datetime(2024, 2, 1)
    assert second.finish == datetime(2024, 2, 3, 17)
    assert (second.work, second.percent_complete) == (16, 50)
    assert third.milestone
    assert plan.path == plan_file


def test_summary_derived_from_outline(plan_file):
    plan = TaskPlan.load(plan_file)
    assert [t.summary for t in plan.tasks] == [True, False, False]


def test_save_writes_text_fields(plan_file, tmp_path):
    plan = TaskPlan.load(plan_file)
    plan.tasks[1].channel.identity = "Spira-TK2"
    out = plan.save(tmp_path / "out.yaml")
    rows = yaml.safe_load(out.read_text())["tasks"]
    assert rows[1]["text1"] == "Spira-TK2"
    assert "text2" not in rows[1]
    assert "summary" not in rows[0]
    reloaded = TaskPlan.load(out)
    assert reloaded.tasks[0].channel.stamp == "2024-01-01T09:00:01.000"


def test_find_and_append():
    plan = TaskPlan([PlanTask(name="a", channel=SideChannel("Spira-TK1"))])
    assert plan.find("Spira-TK1").name == "a"
    assert plan.find("Spira-TK2") is None
    plan.append(PlanTask(name="b", outline_level=2))
    plan.refresh_summaries()
    assert plan.tasks[0].summary


def test_invalid_yaml(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("tasks: [unclosed\n")
    with pytest.raises(ValueError, match="Invalid task plan"):
        TaskPlan.load(path)


def test_invalid_task(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("tasks:\n  - name: x\n    percent_complete: 150\n")
    with pytest.raises(ValueError, match="task 1"):
        TaskPlan.load(path)
