# Copyright Dario Mylonopoulos
# SPDX-License-Identifier: MIT

import hashlib
from pathlib import Path
from threading import Lock
from typing import Dict, Union


def content_digest(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8", errors="surrogatepass")).hexdigest()


class ContentCache:
    """Last seen content of each watched file, stored as a sha256 digest.

    A path is updated after every processing attempt, successful or not, so
    that an unfixable error is not re-triggered by duplicate events.
    """

    def __init__(self) -> None:
        self.lock = Lock()
        self.digests: Dict[Path, str] = {}

    @staticmethod
    def key(path: Union[Path, str]) -> Path:
        return Path(path).resolve()

    def has_changed(self, path: Union[Path, str], content: str) -> bool:
        with self.lock:
            return self.digests.get(self.key(path)) != content_digest(content)

    def update(self, path: Union[Path, str], content: str) -> None:
        digest = content_digest(content)
        with self.lock:
            self.digests[self.key(path)] = digest

    def forget(self, path: Union[Path, str]) -> None:
        with self.lock:
            self.digests.pop(self.key(path), None)

    def __contains__(self, path: Union[Path, str]) -> bool:
        with self.lock:
            return self.key(path) in self.digests

    def __len__(self) -> int:
        with self.lock:
            return len(self.digests)
