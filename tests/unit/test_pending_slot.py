from __future__ import annotations

from threading import Thread

from easl_cli.bridge import PendingSlot


def test_last_publish_wins_and_take_empties() -> None:
    slot: PendingSlot[str] = PendingSlot()

    slot.publish("A")
    slot.publish("B")

    assert slot.take() == "B"
    assert slot.take() is None


def test_initial_value_is_taken_once() -> None:
    slot = PendingSlot("initial")

    assert slot.take() == "initial"
    assert slot.take() is None


def test_take_does_not_wait_for_a_held_lock() -> None:
    slot = PendingSlot("value")

    slot.lock.acquire()
    try:
        assert slot.take() is None
    finally:
        slot.lock.release()

    assert slot.take() == "value"


def test_publish_from_another_thread_is_visible() -> None:
    slot: PendingSlot[int] = PendingSlot()

    t = Thread(target=slot.publish, args=(42,))
    t.start()
    t.join()

    assert slot.take() == 42
