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
from typing import Any, Iterator

from podwatch.constants import LOG_CHUNK_SIZE
from podwatch.utils.log import get_logger


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r")


class ContainerLogStream:
    """
    Line iterator over a followed container log.

    Wraps the raw (unpreloaded) HTTP response of a ``follow=True`` log
    request. Iteration ends when the server closes the stream; a trailing
    line without a newline is still yielded. ``close`` may be called from
    another thread to abort a blocked read and release the connection.
    """

    def __init__(self, response: Any, chunk_size: int = LOG_CHUNK_SIZE):
        self._response = response
        self._chunk_size = chunk_size
        self._closed = threading.Event()
        self._logger = get_logger(f"{__name__}.ContainerLogStream")

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def __iter__(self) -> Iterator[str]:
        buffer = b""
        for chunk in self._response.stream(self._chunk_size, decode_content=True):
            if not chunk:
                continue
            buffer += chunk
            *lines, buffer = buffer.split(b"\n")
            for line in lines:
                yield _decode(line)
        if buffer:
            yield _decode(buffer)

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        try:
            self._response.close()
        finally:
            self._response.release_conn()
        self._logger.debug("Log stream closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
