# Copyright The Volcano Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Any, Optional

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)-40s | %(message)s'


def _format_context(context: Dict[str, Any]) -> str:
    return " | ".join(f"{k}={v}" for k, v in context.items())


def configure_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Configure handlers at the root level.

    Console output goes to stderr; stdout carries the pod's log lines.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


class StructuredLogger:
    def __init__(self, name: str):
        """
        Create a hierarchical logger; records propagate to the root handlers
        installed by configure_logging.
        Example:
        - podwatch.runtime (parent)
          - podwatch.runtime.termination (child)
        """
        self._logger = logging.getLogger(name)
        self._logger.propagate = True

    @property
    def name(self) -> str:
        return self._logger.name

    def info(self, message: str, context: Optional[Dict[str, Any]] = None):
        self._log(logging.INFO, message, context)

    def error(self, message: str, context: Optional[Dict[str, Any]] = None):
        self._log(logging.ERROR, message, context)

    def debug(self, message: str, context: Optional[Dict[str, Any]] = None):
        self._log(logging.DEBUG, message, context)

    def warning(self, message: str, context: Optional[Dict[str, Any]] = None):
        self._log(logging.WARNING, message, context)

    def _log(self, level: int, message: str, context: Optional[Dict[str, Any]]):
        if not self._logger.isEnabledFor(level):
            return
        if context:
            message = f"{message} | {_format_context(context)}"
        self._logger.log(level, message)


def get_logger(name: str) -> StructuredLogger:
    """Factory function to get a hierarchical logger"""
    return StructuredLogger(name)
