from pathlib import Path
import json
import shutil
import sys

from loguru import logger
import pytest

from core.models import Recommendation
from infrastructure.session_repository import JsonSessionRepository
from infrastructure.settings import JsonSettings
from main import _parse_args, build_session, main

SAMPLES = Path(__file__).resolve().parent.parent / "samples"


@pytest.fixture
def settings(tmp_path):
    return JsonSettings.from_dict({"logging": {"update_dir": str(tmp_path / "updates")}})


def test_build_session_from_snapshot(settings):
    vm = build_session(_parse_args(["demo", "--data-dir", str(SAMPLES)]), settings)

    assert vm.assessment("p2").overall_score == pytest.approx(95.05)
    assert vm.assessment("p1").recommendation is Recommendation.CLOSED_EYES
    assert vm.assessment("p3").detection_unavailable
    assert vm.assessment("p4").recommendation is Recommendation.BLURRY
    assert vm.get_group("group-1").best_photo_id == "p2"
    assert vm.get_group("group-2").best_photo_id == "p4"
    assert vm.session_best_photo_id() == "p2"
    assert vm.selection_progress() == (5, 5)


def test_build_session_by_clustering(settings):
    vm = build_session(_parse_args(["demo", "--data-dir", str(SAMPLES), "--cluster"]), settings)
    assert [sorted(p.id for p in g.photos) for g in vm.group_list] == [
        ["p1", "p2", "p3"],
        ["p4", "p5"],
    ]
    assert vm.get_group("group-1").name == "Group 1"


def test_snapshot_keeps_saved_best(tmp_path, settings):
    data = tmp_path / "data"
    shutil.copytree(SAMPLES, data)
    vm = build_session(_parse_args(["demo", "--data-dir", str(data)]), settings)
    vm.set_manual_best("group-1", "p3")
    repo = JsonSessionRepository(data)
    repo.save(repo.path_for("demo"), vm.group_list, session_id="demo")

    reloaded = build_session(_parse_args(["demo", "--data-dir", str(data)]), settings)
    assert reloaded.get_group("group-1").best_photo_id == "p3"


def test_photo_absent_from_detections_has_no_stale_score(settings):
    vm = build_session(_parse_args(["demo", "--data-dir", str(SAMPLES)]), settings)
    assert vm.find_photo("p5").quality_score is None
    assert vm.selection_progress("p5") == (0, 0)


def test_missing_detection_file_keeps_snapshot_scores(tmp_path, settings):
    data = tmp_path / "data"
    shutil.copytree(SAMPLES, data)
    (data / "demo.faces.json").unlink()
    vm = build_session(_parse_args(["demo", "--data-dir", str(data)]), settings)
    assert vm.find_photo("p2").confidence_score == 91
    assert vm.assessment("p2").overall_score is None
    assert vm.get_group("group-1").best_photo_id == "p2"


def test_main_reports_log_file(tmp_path):
    settings_path = tmp_path / "settings.json"
    settings_path.write_text(
        json.dumps(
            {"logging": {"dir": str(tmp_path / "logs"), "update_dir": str(tmp_path / "updates")}}
        ),
        encoding="utf-8",
    )
    try:
        assert main(["demo", "--data-dir", str(SAMPLES), "--settings", str(settings_path)]) == 0
        logger.complete()
    finally:
        logger.remove()
        logger.add(sys.stderr)
    (log_file,) = (tmp_path / "logs").glob("app_*.log")
    assert f"Log file: {log_file}" in log_file.read_text(encoding="utf-8")
