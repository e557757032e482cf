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

"""
Runtime module for podwatch.

This module contains the business logic behind each CLI subcommand,
exposed as both CLI commands and Python functions.
"""

from .context import RunContext
from .coordinator import RunCoordinator
from .log_streamer import LogSession, LogStreamer
from .readiness import PollPolicy, ReadinessPoller
from .termination import TerminationWatcher

__all__ = [
    "RunContext",
    "RunCoordinator",
    "LogSession",
    "LogStreamer",
    "PollPolicy",
    "ReadinessPoller",
    "TerminationWatcher",
]
