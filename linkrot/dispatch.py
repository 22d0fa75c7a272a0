"""Fan links out to the probe client and fan results back in.

A producer thread walks the target, reads each markdown file and starts one
probe task per link as soon as the file is read, so probing overlaps with the
rest of the walk. Probe tasks push their results onto an unbounded queue that
the caller drains through :meth:`LinkChecker.check`.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Iterable, Iterator, Optional

from linkrot.extract import extract_links
from linkrot.probe import ProbeClient, ProbeResult
from linkrot.walk import WalkTarget, iter_markdown_files, read_markdown

logger = logging.getLogger(__name__)

_END = object()


class TaskGroup:
    """One thread per task, joined by :meth:`wait`.

    With ``limit`` set, :meth:`go` blocks until fewer than ``limit`` tasks are
    running. The first exception raised by a task is re-raised by
    :meth:`wait` once every task has finished.
    """

    def __init__(self, limit: Optional[int] = None):
        self._slots = threading.BoundedSemaphore(limit) if limit else None
        self._cond = threading.Condition()
        self._pending = 0
        self._error: Optional[BaseException] = None

    def go(self, fn: Callable, *args):
        if self._slots is not None:
            self._slots.acquire()
        with self._cond:
            self._pending += 1
        try:
            threading.Thread(target=self._run, args=(fn, args), daemon=True).start()
        except BaseException:
            self._finish(None)
            raise

    def _run(self, fn, args):
        error = None
        try:
            fn(*args)
        except Exception as e:
            error = e
        self._finish(error)

    def _finish(self, error):
        if self._slots is not None:
            self._slots.release()
        with self._cond:
            if error is not None and self._error is None:
                self._error = error
            self._pending -= 1
            if not self._pending:
                self._cond.notify_all()

    def wait(self):
        with self._cond:
            while self._pending:
                self._cond.wait()
            if self._error is not None:
                raise self._error


class _Run:
    def __init__(self, limit):
        self.results = queue.Queue()
        self.done = threading.Event()
        self.group = TaskGroup(limit)
        self.error: Optional[BaseException] = None


class LinkChecker:
    def __init__(self, client: ProbeClient, concurrency: Optional[int] = None):
        self.client = client
        self.concurrency = concurrency

    def check(self, target: WalkTarget) -> Iterator[ProbeResult]:
        """Probe every link of every markdown file under ``target``.

        Results are yielded in completion order. A discovery error stops the
        walk, but it is raised only after every already dispatched probe has
        been yielded.
        """
        return self._drain(lambda run: self._walk(target, run))

    def check_links(self, links: Iterable[str]) -> Iterator[ProbeResult]:
        return self._drain(lambda run: self._dispatch(links, run))

    def _drain(self, feed) -> Iterator[ProbeResult]:
        run = _Run(self.concurrency)
        producer = threading.Thread(
            target=self._produce, args=(feed, run), name="linkrot-producer", daemon=True
        )
        producer.start()
        try:
            while True:
                result = run.results.get()
                if result is _END:
                    break
                yield result
        finally:
            # consumer gone or finished: no new probes from here on
            run.done.set()
        producer.join()
        if run.error is not None:
            raise run.error

    def _produce(self, feed, run: _Run):
        try:
            try:
                feed(run)
            except Exception as e:
                run.error = e
            try:
                run.group.wait()
            except Exception as e:
                if run.error is None:
                    run.error = e
        finally:
            run.results.put(_END)

    def _walk(self, target: WalkTarget, run: _Run):
        for path in iter_markdown_files(target):
            if run.done.is_set():
                return
            links = extract_links(read_markdown(path))
            logger.info("processing %s: %d links", path, len(links))
            self._dispatch(links, run)

    def _dispatch(self, links: Iterable[str], run: _Run):
        for link in links:
            if run.done.is_set():
                return
            run.group.go(self._probe, link, run.results)

    def _probe(self, link: str, results: queue.Queue):
        results.put(self.client.probe(link))
