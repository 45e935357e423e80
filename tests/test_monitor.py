"""Tests for filesystem monitoring."""

import queue
import threading
from pathlib import Path

from watchdog.events import DirCreatedEvent, FileCreatedEvent, FileDeletedEvent, FileMovedEvent

from longbox.monitor import ComicLibraryHandler, MonitorTask, is_relevant, process_queue, start_file_monitoring


def test_is_relevant():
    assert is_relevant(Path("/comics/issue1.cbz"), False)
    assert is_relevant(Path("/comics/issue1.CBR"), False)
    assert is_relevant(Path("/comics/New Series"), True)
    assert not is_relevant(Path("/comics/._issue1.cbz"), False)
    assert not is_relevant(Path("/comics/cover.jpg"), False)


def test_handler_queues_only_comic_events():
    task_queue = queue.Queue()
    handler = ComicLibraryHandler(task_queue)

    handler.on_created(FileCreatedEvent("/comics/issue1.cbz"))
    handler.on_created(FileCreatedEvent("/comics/notes.txt"))
    handler.on_created(DirCreatedEvent("/comics/Saga"))
    handler.on_deleted(FileDeletedEvent("/comics/issue2.cbr"))
    handler.on_moved(FileMovedEvent("/comics/tmp.part", "/comics/issue3.cbz"))

    tasks = []
    while not task_queue.empty():
        tasks.append(task_queue.get_nowait())

    assert tasks == [
        MonitorTask("created", Path("/comics/issue1.cbz")),
        MonitorTask("created", Path("/comics/Saga")),
        MonitorTask("deleted", Path("/comics/issue2.cbr")),
        MonitorTask("moved", Path("/comics/issue3.cbz")),
    ]


class _FakeScheduler:
    def __init__(self, accept_after=0):
        self.calls = 0
        self.accept_after = accept_after
        self.accepted = threading.Event()

    def trigger(self, full=False):
        self.calls += 1
        if self.calls > self.accept_after:
            self.accepted.set()
            return True
        return False


def test_burst_of_events_becomes_one_scan():
    task_queue = queue.Queue()
    for i in range(5):
        task_queue.put(MonitorTask("created", Path(f"/comics/issue{i}.cbz")))
    scheduler = _FakeScheduler()
    stop_event = threading.Event()

    worker = threading.Thread(target=process_queue, args=(task_queue, scheduler, stop_event, 0.2))
    worker.start()
    assert scheduler.accepted.wait(5)
    stop_event.set()
    worker.join(5)

    assert scheduler.calls == 1


def test_busy_scheduler_is_retried():
    task_queue = queue.Queue()
    task_queue.put(MonitorTask("created", Path("/comics/issue1.cbz")))
    scheduler = _FakeScheduler(accept_after=1)
    stop_event = threading.Event()

    worker = threading.Thread(target=process_queue, args=(task_queue, scheduler, stop_event, 0.1))
    worker.start()
    assert scheduler.accepted.wait(10)
    stop_event.set()
    worker.join(5)

    assert scheduler.calls == 2


def test_monitoring_disabled_by_default(config):
    assert start_file_monitoring(config, _FakeScheduler()) is None
