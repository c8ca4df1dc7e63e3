"""Streams a rendered invoice to a consumer in bounded chunks.

The layout runs in a producer thread and writes into a ``queue.Queue`` with
a fixed capacity, so a slow consumer pauses the producer instead of letting
the whole document pile up in memory. The consumer side is a plain
generator, which is what a WSGI response iterates.
"""
from __future__ import annotations

import logging
import threading
from queue import Empty, Full, Queue
from typing import Callable, Iterator

from ..config import InvoiceConfig
from ..domain import InvoiceView
from ..errors import RenderError
from .pdf import write_invoice_pdf

log = logging.getLogger(__name__)

CHUNK_SIZE = 16 * 1024
MAX_PENDING_CHUNKS = 8
PUT_POLL_SECONDS = 0.5

_DONE = object()


class StreamCancelled(Exception):
    pass


class QueueWriter:
    """File-like sink that splits writes into chunks and hands them to a queue."""

    def __init__(self, queue: Queue, cancelled: threading.Event, chunk_size: int = CHUNK_SIZE) -> None:
        self.queue = queue
        self.cancelled = cancelled
        self.chunk_size = chunk_size
        self.bytes_written = 0
        self.closed = False

    def put(self, item: object) -> None:
        while True:
            if self.cancelled.is_set():
                raise StreamCancelled()
            try:
                self.queue.put(item, timeout=PUT_POLL_SECONDS)
                return
            except Full:
                continue

    def write(self, data: bytes | str) -> int:
        if isinstance(data, str):
            data = data.encode("latin-1")
        for start in range(0, len(data), self.chunk_size):
            self.put(bytes(data[start : start + self.chunk_size]))
        self.bytes_written += len(data)
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.put(_DONE)


Renderer = Callable[[InvoiceView, QueueWriter, InvoiceConfig], object]


def stream_invoice(
    view: InvoiceView,
    settings: InvoiceConfig | None = None,
    *,
    renderer: Renderer = write_invoice_pdf,
    chunk_size: int = CHUNK_SIZE,
    max_pending: int = MAX_PENDING_CHUNKS,
) -> Iterator[bytes]:
    """Yield the document in chunks; a render failure raises ``RenderError``.

    Closing the generator early (client went away) cancels the producer.
    """
    settings = settings or InvoiceConfig()
    queue: Queue = Queue(maxsize=max_pending)
    cancelled = threading.Event()
    writer = QueueWriter(queue, cancelled, chunk_size)

    def produce() -> None:
        try:
            renderer(view, writer, settings)
            writer.close()
        except StreamCancelled:
            log.info("invoice stream for order #%s cancelled by consumer", view.order.id)
        except Exception as e:
            log.exception("render invoice for order #%s failed", view.order.id)
            try:
                writer.put(RenderError(f"Rendering failed: {e}"))
            except StreamCancelled:
                pass

    producer = threading.Thread(target=produce, name=f"invoice-{view.order.id}", daemon=True)
    producer.start()
    try:
        while True:
            try:
                item = queue.get(timeout=PUT_POLL_SECONDS)
            except Empty:
                if not producer.is_alive() and queue.empty():
                    raise RenderError("Renderer stopped without finishing the document")
                continue
            if item is _DONE:
                return
            if isinstance(item, RenderError):
                raise item
            yield item
    finally:
        cancelled.set()
