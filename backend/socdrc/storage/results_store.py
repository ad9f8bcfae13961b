"""
Per-project result files.

    <PROJECTS_ROOT>/<project_id>/arch_diagram.json   saved diagram
    <PROJECTS_ROOT>/<project_id>/drc_results.json    latest DRC result (overwritten each run)
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Optional

from socdrc.config import PROJECTS_ROOT
from socdrc.drc.report import DRCResult
from socdrc.ir.diagram import Diagram

logger = logging.getLogger(__name__)

PROJECT_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(text, encoding="utf-8")
    os.replace(tmp_path, path)


class ResultsStore:
    DIAGRAM_FILE = "arch_diagram.json"
    RESULTS_FILE = "drc_results.json"

    def __init__(self, root: str = PROJECTS_ROOT):
        self.root = Path(root)

    def project_dir(self, project_id: str) -> Path:
        if not PROJECT_ID_PATTERN.match(project_id or ""):
            raise ValueError(f"Invalid project id: {project_id!r}")
        return self.root / project_id

    def load_diagram(self, project_id: str) -> Optional[Diagram]:
        path = self.project_dir(project_id) / self.DIAGRAM_FILE
        if not path.exists():
            return None
        return Diagram.from_json(path.read_text(encoding="utf-8"))

    def save_diagram(self, project_id: str, diagram: Diagram) -> Path:
        path = self.project_dir(project_id) / self.DIAGRAM_FILE
        atomic_write(path, diagram.to_json())
        return path

    def save_result(self, project_id: str, result: DRCResult) -> Path:
        path = self.project_dir(project_id) / self.RESULTS_FILE
        atomic_write(path, json.dumps(result.to_dict(), indent=2))
        logger.info("[ResultsStore] Saved DRC result for %s (%d violations)", project_id, len(result.violations))
        return path

    def load_result(self, project_id: str) -> Optional[DRCResult]:
        path = self.project_dir(project_id) / self.RESULTS_FILE
        if not path.exists():
            return None
        return DRCResult.from_dict(json.loads(path.read_text(encoding="utf-8")))


def get_results_store() -> ResultsStore:
    return ResultsStore(PROJECTS_ROOT)
