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

class PodwatchError(Exception):
    """Base exception class for all podwatch errors"""
    def __init__(self, message: str, context: dict = None):
        super().__init__(message)
        self.context = context or {}
        self.code = getattr(self, 'code', 500)

class ConfigurationError(PodwatchError):
    """Invalid or unreadable configuration"""
    code = 400

class HomeDirectoryError(ConfigurationError):
    """Home directory is required but cannot be determined"""

class ReadinessError(PodwatchError):
    """Pod could not be observed reaching the Running phase"""
    code = 502

class ReadinessTimeoutError(ReadinessError):
    """Pod did not reach the Running phase before the deadline"""
    code = 504

class StreamError(PodwatchError):
    """Log retrieval failed mid-stream"""
    code = 502

class WatchDecodeError(PodwatchError):
    """Watch delivered an object that is not a pod"""
    code = 500

class PodTerminatedError(ReadinessError):
    """Pod reached a terminal phase without being observed running"""
    code = 409

    def __init__(self, message: str, snapshot, context: dict = None):
        super().__init__(message, context)
        self.snapshot = snapshot

class StreamInterruptedError(StreamError):
    """Log stream was cut short by cancellation or the run deadline"""
    code = 504
