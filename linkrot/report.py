from __future__ import annotations

import sys
import threading
from typing import Iterable, Optional, TextIO

from linkrot.probe import ProbeResult


class Reporter:
    """Writes one ``[<status>]: <link>`` or ``[err]: <link>`` line per result.

    :meth:`report` may also be called straight from probe threads; lines and
    counters stay consistent.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream if stream is not None else sys.stdout
        self._lock = threading.Lock()
        self.lines = 0
        self.ok = 0
        self.errors = 0

    def report(self, result: ProbeResult):
        with self._lock:
            self.stream.write(format_result(result) + "\n")
            self.stream.flush()
            self.lines += 1
            if result.ok:
                self.ok += 1
            else:
                self.errors += 1

    def report_all(self, results: Iterable[ProbeResult]) -> int:
        for result in results:
            self.report(result)
        return self.lines


def format_result(result: ProbeResult) -> str:
    return f"[{result.label}]: {result.link}"
