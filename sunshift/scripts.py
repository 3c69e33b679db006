"""User scripts notified of the current day segment."""

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


logger = logging.getLogger(__name__)

SCRIPT_TIMEOUT = 30


@dataclass(frozen=True)
class SegmentReport:
    """Segment classification passed to observers after each evaluation."""

    day_segment2: int
    day_segment4: int
    image_path: Optional[Path] = None

    def to_args(self) -> list[str]:
        args = [
            '--daySegment2', str(self.day_segment2),
            '--daySegment4', str(self.day_segment4),
        ]
        if self.image_path is not None:
            args += ['--imagePath', str(self.image_path)]
        return args


class ScriptManager:
    """Runs every executable in a directory with the latest segment report."""

    def __init__(self, scripts_dir: Path):
        self.scripts_dir = scripts_dir
        self._last_report: Optional[SegmentReport] = None

    def find_scripts(self) -> list[Path]:
        """Executable files in the scripts directory, sorted by name."""
        if not self.scripts_dir.is_dir():
            return []
        return sorted(
            p for p in self.scripts_dir.iterdir()
            if p.is_file() and os.access(p, os.X_OK)
        )

    def __call__(self, report: SegmentReport):
        """Run scripts if the report differs from the previous one."""
        if report == self._last_report:
            return
        self._last_report = report

        for script in self.find_scripts():
            self._run_script(script, report)

    def _run_script(self, script: Path, report: SegmentReport):
        cmd = [str(script)] + report.to_args()
        logger.debug(f"Running script: {' '.join(cmd)}")
        try:
            subprocess.run(cmd, capture_output=True, text=True, check=True, timeout=SCRIPT_TIMEOUT)
        except subprocess.CalledProcessError as e:
            logger.error(f"Script {script.name} failed ({e.returncode}): {e.stderr or e.stdout}")
        except subprocess.TimeoutExpired:
            logger.error(f"Script {script.name} timed out after {SCRIPT_TIMEOUT}s")
        except OSError as e:
            logger.error(f"Could not run script {script.name}: {e}")
