"""Single-flight guard and cancellation flag for conversions."""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from .errors import ConversionBusyError

logger = logging.getLogger("ffconvert")


class ConversionSession:
    """Process-wide conversion state owned by one converter instance.

    Holds two flags behind a single lock:

    - ``is_converting``: true from the moment a request is accepted until
      its result is returned. A second request is rejected while set.
    - ``is_cancelled``: cleared when a conversion starts, set by an
      out-of-band :meth:`request_cancel`. Readers poll it between lines.

    A ``threading.Lock`` is used so the cancel request may come from any
    thread (a GUI callback) as well as from another asyncio task.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._converting = False
        self._cancelled = False

    @property
    def is_converting(self) -> bool:
        with self._lock:
            return self._converting

    @property
    def is_cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def try_begin(self) -> bool:
        """Claim the session. Returns ``False`` if already claimed."""
        with self._lock:
            if self._converting:
                return False
            self._converting = True
            self._cancelled = False
            return True

    def finish(self) -> None:
        with self._lock:
            self._converting = False

    def request_cancel(self) -> None:
        """Ask the running conversion to stop and discard its output."""
        with self._lock:
            self._cancelled = True
        logger.info("Conversion cancellation requested")

    @contextmanager
    def claim(self) -> Iterator["ConversionSession"]:
        """Hold the session for the duration of the ``with`` block.

        Raises:
            ConversionBusyError: If another conversion holds the session.
        """
        if not self.try_begin():
            raise ConversionBusyError()
        try:
            yield self
        finally:
            self.finish()
