import threading

import pytest

from wbgenesis.session import Session


class FakeChannel:
    def __init__(self):
        self.close_calls = 0

    def close(self):
        self.close_calls += 1


def test_close_releases_slot_and_closes_channel():
    sem = threading.Semaphore(1)
    assert sem.acquire(blocking=False)
    channel = FakeChannel()
    session = Session(channel, sem)
    assert session.channel is channel
    session.close()
    assert channel.close_calls == 1
    assert session.closed
    assert sem.acquire(blocking=False)


def test_close_twice_releases_once():
    sem = threading.Semaphore(1)
    sem.acquire()
    channel = FakeChannel()
    session = Session(channel, sem)
    session.close()
    session.close()
    assert channel.close_calls == 1
    assert sem.acquire(blocking=False)
    assert not sem.acquire(blocking=False)


def test_context_manager_closes_on_error():
    sem = threading.Semaphore(1)
    sem.acquire()
    channel = FakeChannel()
    with pytest.raises(RuntimeError):
        with Session(channel, sem) as session:
            assert not session.closed
            raise RuntimeError("boom")
    assert channel.close_calls == 1
    assert sem.acquire(blocking=False)