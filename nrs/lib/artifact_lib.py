'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''

import logging
import threading
from datetime import datetime
from pathlib import Path

from nrs.lib.utils_lib import image_slug

log = logging.getLogger(__name__)

SUMMARY_LOG_NAME = "summary.log"
SUMMARY_FORMAT = "[%(asctime)s] %(message)s"
SUMMARY_DATEFMT = "%Y-%m-%d %H:%M:%S"


def timestamp():
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def create_run_dir(base_dir, framework, image):
    """Create <base_dir>/<framework>_stress_<image_slug>_<timestamp> and return it."""
    run_dir = Path(base_dir) / f"{framework}_stress_{image_slug(image)}_{timestamp()}"
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def attach_summary_log(run_dir, logger_name="nrs"):
    """
    Mirror every record of the package logger into <run_dir>/summary.log.

    Returns the handler so the caller can detach it when the run ends.
    """
    handler = logging.FileHandler(Path(run_dir) / SUMMARY_LOG_NAME)
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(SUMMARY_FORMAT, datefmt=SUMMARY_DATEFMT))
    logger = logging.getLogger(logger_name)
    if logger.level == logging.NOTSET or logger.level > logging.INFO:
        logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    return handler


def detach_summary_log(handler, logger_name="nrs"):
    logging.getLogger(logger_name).removeHandler(handler)
    handler.close()


class IterationLog:
    """
    Per-iteration log artifact.

    Written concurrently by the log-capture thread, the watchdog and the
    workload driver, hence the lock. finalize() renames the file so the
    terminal status is part of its name.
    """

    def __init__(self, run_dir, index, stamp=None):
        self.run_dir = Path(run_dir)
        self.index = index
        self.stamp = stamp or timestamp()
        self.path = self.run_dir / f"iter_{index}_{self.stamp}.log"
        self._lock = threading.Lock()
        self.path.touch()

    def write(self, text):
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(text)

    def write_bytes(self, chunk):
        self.write(chunk.decode("utf-8", errors="replace"))

    def read_text(self):
        with self._lock:
            if not self.path.exists():
                return ""
            return self.path.read_text(encoding="utf-8", errors="replace")

    def finalize(self, status):
        final = self.run_dir / f"iter_{self.index}_{self.stamp}_{status}.log"
        with self._lock:
            try:
                self.path.rename(final)
            except OSError as e:
                log.warning(f"Could not rename {self.path} to {final}: {e}")
                return self.path
            self.path = final
        return final
