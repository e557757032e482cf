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

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from podwatch.constants import UNDETERMINED_EXIT_CODE
from podwatch.exceptions import StreamError


class StreamEventKind(Enum):
    LINE = "line"
    FAILURE = "failure"
    DONE = "done"


@dataclass(frozen=True)
class StreamEvent:
    """One signal from a log streaming session: a line, a failure or the end"""
    kind: StreamEventKind
    text: Optional[str] = None
    error: Optional[StreamError] = None

    @classmethod
    def line(cls, text: str) -> "StreamEvent":
        return cls(StreamEventKind.LINE, text=text)

    @classmethod
    def failure(cls, error: StreamError) -> "StreamEvent":
        return cls(StreamEventKind.FAILURE, error=error)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(StreamEventKind.DONE)

    @property
    def final(self) -> bool:
        return self.kind is not StreamEventKind.LINE


@dataclass(frozen=True)
class RunResult:
    exit_code: int = UNDETERMINED_EXIT_CODE

    @property
    def determined(self) -> bool:
        return self.exit_code != UNDETERMINED_EXIT_CODE

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0
