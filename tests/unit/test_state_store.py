import threading
import time
from concurrent.futures import ThreadPoolExecutor

from alarmbot.core.contracts import AlarmState
from alarmbot.core.state import ReadWriteLock, StateStore


def test_store_starts_disarmed() -> None:
    assert StateStore().get() is AlarmState.DISARMED


def test_store_returns_last_written_value() -> None:
    store = StateStore()
    store.set(AlarmState.ARMED)
    assert store.get() is AlarmState.ARMED
    store.set(AlarmState.DISARMED)
    assert store.get() is AlarmState.DISARMED


def test_concurrent_access_only_observes_written_values() -> None:
    store = StateStore()
    seen: set[AlarmState] = set()

    def writer(index: int) -> None:
        store.set(AlarmState.ARMED if index % 2 else AlarmState.DISARMED)

    def reader(_: int) -> None:
        seen.add(store.get())

    with ThreadPoolExecutor(max_workers=8) as pool:
        for index in range(200):
            pool.submit(writer, index)
            pool.submit(reader, index)

    assert seen <= {AlarmState.ARMED, AlarmState.DISARMED}
    assert store.get() in (AlarmState.ARMED, AlarmState.DISARMED)


def test_readers_overlap() -> None:
    lock = ReadWriteLock()
    both_inside = threading.Barrier(2, timeout=1)

    def read() -> None:
        with lock.read():
            both_inside.wait()

    threads = [threading.Thread(target=read) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=2)

    assert not both_inside.broken


def test_writer_excludes_readers() -> None:
    lock = ReadWriteLock()
    events: list[str] = []
    writer_inside = threading.Event()

    def write() -> None:
        with lock.write():
            writer_inside.set()
            time.sleep(0.05)
            events.append("write-done")

    def read() -> None:
        writer_inside.wait(timeout=1)
        with lock.read():
            events.append("read")

    writer_thread = threading.Thread(target=write)
    reader_thread = threading.Thread(target=read)
    writer_thread.start()
    reader_thread.start()
    writer_thread.join(timeout=2)
    reader_thread.join(timeout=2)

    assert events == ["write-done", "read"]
