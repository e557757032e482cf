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

import threading
from pathlib import Path
from typing import Optional, TextIO

from rich.console import Console

from podwatch.exceptions import StreamError


class ConsoleSink:
    """
    Operator-facing sink for pod log lines.

    Lines are written to the console as they arrive and, when a log file is
    given, appended to it as well. Write failures raise StreamError.
    """

    def __init__(self, console: Optional[Console] = None, log_file: Optional[str] = None):
        self.console = console or Console(soft_wrap=True, highlight=False)
        self.log_file = log_file
        self._file: Optional[TextIO] = None
        self._lock = threading.Lock()

    def open(self) -> "ConsoleSink":
        if self.log_file and self._file is None:
            try:
                Path(self.log_file).parent.mkdir(parents=True, exist_ok=True)
                self._file = open(self.log_file, 'a', encoding='utf-8')
            except OSError as e:
                raise StreamError(f"Failed to open log file {self.log_file}: {e}") from e
        return self

    def __call__(self, line: str) -> None:
        with self._lock:
            try:
                self.console.out(line, highlight=False)
                if self._file is not None:
                    self._file.write(line + "\n")
                    self._file.flush()
            except OSError as e:
                raise StreamError(f"Failed to write log line: {e}") from e

    def close(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
