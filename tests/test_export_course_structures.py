# tests/test_export_course_structures.py
from __future__ import annotations

from export.export_course_structures import ensure_hook, export_course_structures, hook_path
from tests.conftest import DEPLOYMENT

DUMP = b"course_id,block_id,block_type,parent_id,display_name\ncourse-v1:X+Y+Z,block-v1:X+Y+Z+type@course+block@course,course,,Demo \xc3\xa9\n"


def test_missing_hook_is_linked_as_lms_user(export_config, fake_runner):
    created = ensure_hook(export_config, fake_runner)

    assert created is True
    call = fake_runner.calls[0]
    assert call["cmd"] == ["ln", "-s", str(export_config.bundled_hook), str(hook_path(export_config))]
    assert call["as_user"] == "edxapp"


def test_existing_hook_is_left_alone(export_config, fake_runner):
    target = hook_path(export_config)
    target.write_text("# already there\n")

    assert ensure_hook(export_config, fake_runner) is False
    assert fake_runner.calls == []


def test_dump_written_verbatim(export_config, fake_runner):
    hook_path(export_config).write_text("# present\n")
    fake_runner.on("dump_course_structures", DUMP)

    result = export_course_structures(export_config, fake_runner)

    out = export_config.report_root / "course_structures" / f"lms={DEPLOYMENT}" / "course_structures.csv"
    assert result.ok
    assert result.outputs == (out,)
    assert out.read_bytes() == DUMP
    call = fake_runner.calls[-1]
    assert call["kind"] == "stream"
    assert call["as_user"] == "edxapp"
    assert call["cmd"][-1] == "dump_course_structures"


def test_dry_run_skips_everything(export_config, fake_runner):
    result = export_course_structures(export_config.with_(dry_run=True), fake_runner)
    assert result.ok and result.skipped
    assert fake_runner.calls == []


def test_manage_command_failure_is_reported(export_config, fake_runner):
    hook_path(export_config).write_text("# present\n")
    fake_runner.fail_on("dump_course_structures")

    result = export_course_structures(export_config, fake_runner)

    assert not result.ok
    assert "dump_course_structures" in result.reason
    assert not list(export_config.report_root.rglob("*.csv"))
