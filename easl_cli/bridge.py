# Copyright Dario Mylonopoulos
# SPDX-License-Identifier: MIT

from threading import Lock
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class PendingSlot(Generic[T]):
    """Single value mailbox between the watch thread and the render loop.

    publish() overwrites any value that was not taken yet. take() never waits
    for the lock: if the producer holds it, the frame proceeds without an
    update and the value is picked up on a later frame.
    """

    def __init__(self, initial: Optional[T] = None):
        self.lock = Lock()
        self.value: Optional[T] = initial

    def publish(self, value: T) -> None:
        with self.lock:
            self.value = value

    def take(self) -> Optional[T]:
        if not self.lock.acquire(blocking=False):
            return None
        try:
            value, self.value = self.value, None
        finally:
            self.lock.release()
        return value
