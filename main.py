from __future__ import annotations

import argparse
from pathlib import Path
import sys

from loguru import logger

from app.viewmodels.session_vm import SessionVM
from core.errors import DetectionUnavailableError
from core.services.quality_service import QualityAggregator
from infrastructure.detection_repository import JsonDetectionRepository
from infrastructure.logging import find_latest_log_file, find_latest_update_log, init_logging
from infrastructure.session_repository import JsonSessionRepository, SimilarityGroupingSource
from infrastructure.settings import (
    JsonSettings,
    grouping_options,
    quality_config,
    reconsider_on_change,
)
from infrastructure.update_log import CsvUpdateLog

BASE_DIR = Path(__file__).parent


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Pick the best shot of each photo group.")
    parser.add_argument("session_id", help="Session to load")
    parser.add_argument("--data-dir", default=str(BASE_DIR / "samples"))
    parser.add_argument("--settings", default=str(BASE_DIR / "settings.json"))
    parser.add_argument(
        "--cluster",
        action="store_true",
        help="Build groups from <session>.similarity.json instead of a saved snapshot",
    )
    parser.add_argument("--save", action="store_true", help="Write the snapshot back")
    parser.add_argument("--gui", action="store_true", help="Show the groups in a tree view")
    return parser.parse_args(argv)


def build_session(args: argparse.Namespace, settings: JsonSettings) -> SessionVM:
    """Load groups and detections for `args.session_id` into a SessionVM."""
    if args.cluster:
        source = SimilarityGroupingSource(args.data_dir, grouping_options(settings))
    else:
        source = JsonSessionRepository(args.data_dir)

    vm = SessionVM(
        aggregator=QualityAggregator(quality_config(settings)),
        sink=CsvUpdateLog(settings.get("logging.update_dir")),
        reconsider_on_change=reconsider_on_change(settings),
    )
    vm.load(source.load_groups(args.session_id))

    try:
        results = JsonDetectionRepository(args.data_dir).fetch(args.session_id)
    except DetectionUnavailableError as ex:
        # Keep the snapshot scores; nothing is known about any photo's faces.
        logger.warning("No detections for session {}: {}", args.session_id, ex)
    else:
        applied = vm.apply_detection_results(results)
        logger.info("Applied {} detection results", applied)

    # Keep picks that came with the snapshot
    for group in vm.group_list:
        if group.best_photo_id is None:
            vm.recompute_best(group.id)
    return vm


def _show_gui(vm: SessionVM) -> int:
    from PySide6.QtWidgets import QApplication, QTreeView

    from app.views.tree_model_builder import build_model

    app = QApplication(sys.argv)
    _model, proxy = build_model(vm.group_vms())
    view = QTreeView()
    view.setModel(proxy)
    view.setSortingEnabled(True)
    view.expandAll()
    view.setWindowTitle("Best Shot")
    view.resize(900, 600)
    view.show()
    return app.exec()


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = JsonSettings(args.settings)
    init_logging(settings.get("logging.dir"), settings.get("logging.level", "INFO"), console=True)
    logger.info("Log file: {}", find_latest_log_file(settings.get("logging.dir")))

    vm = build_session(args, settings)

    stats = vm.stats()
    logger.info(
        "Session {}: {} photos in {} groups, avg confidence {:.0%}, avg similarity {:.0%}",
        args.session_id,
        stats.total_photos,
        stats.total_groups,
        stats.avg_confidence,
        stats.avg_similarity,
    )
    for g in vm.group_vms():
        logger.info("{} [{}]: best={}", g.name, g.group_type.value, g.best_photo_id)
    logger.info("Session best photo: {}", vm.session_best_photo_id())
    selected, total = vm.selection_progress()
    logger.info("{} of {} faces selected", selected, total)

    if args.save:
        repo = JsonSessionRepository(args.data_dir)
        repo.save(repo.path_for(args.session_id), vm.group_list, session_id=args.session_id)
        logger.info("Snapshot saved to {}", repo.path_for(args.session_id))

    update_log = find_latest_update_log(settings.get("logging.update_dir"))
    if update_log is not None:
        logger.info("Update log: {}", update_log)

    if args.gui:
        return _show_gui(vm)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
