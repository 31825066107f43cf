"""Debounced, supersedable pipeline runs with last-good-output fallback."""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from PIL import Image

from bitmap_art.config import BitmapConfig
from bitmap_art.pipeline import BitmapResult, CancelCheck, RenderCancelled, render

logger = logging.getLogger(__name__)


class Renderer(Protocol):
    def __call__(
        self,
        image: Image.Image | None,
        config: BitmapConfig,
        *,
        should_cancel: CancelCheck | None = None,
    ) -> BitmapResult | None: ...


class RenderSession:
    """Holds the current source image and the latest finished output.

    Requests go into a single slot: a new :meth:`request` restarts the
    debounce timer and supersedes whatever run is in flight. A superseded
    run stops at its next row boundary and its result is never published.
    A failing run is logged and leaves the previous output in place.
    """

    def __init__(self, debounce: float = 0.05, renderer: Renderer = render) -> None:
        self._debounce = debounce
        self._renderer = renderer
        self._lock = threading.Lock()
        self._done = threading.Condition(self._lock)
        self._image: Image.Image | None = None
        self._generation = 0
        self._finished = 0
        self._timer: threading.Timer | None = None
        self._output: BitmapResult | None = None
        self._last_error: Exception | None = None

    @property
    def image(self) -> Image.Image | None:
        return self._image

    @property
    def output(self) -> BitmapResult | None:
        """Most recent successful result (survives later failures)."""
        return self._output

    @property
    def last_error(self) -> Exception | None:
        """Failure of the most recent run, cleared by the next success."""
        return self._last_error

    @property
    def generation(self) -> int:
        return self._generation

    def load(self, image: Image.Image | None) -> None:
        self._image = image

    def request(self, config: BitmapConfig) -> int:
        """Schedule a run after the debounce window; returns its generation."""
        with self._lock:
            generation = self._supersede()
            timer = threading.Timer(
                self._debounce, self._run, args=(generation, config, self._image),
            )
            timer.daemon = True
            self._timer = timer
        timer.start()
        logger.debug("Run %d scheduled", generation)
        return generation

    def render_now(self, config: BitmapConfig) -> BitmapResult | None:
        """Run synchronously, superseding any pending or in-flight run."""
        with self._lock:
            generation = self._supersede()
        return self._run(generation, config, self._image)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the latest requested run has finished."""
        with self._done:
            return self._done.wait_for(
                lambda: self._finished >= self._generation, timeout=timeout,
            )

    def close(self) -> None:
        """Drop any pending request; waiters are released."""
        with self._done:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._finished = self._generation
            self._done.notify_all()

    # -- internals -----------------------------------------------------

    def _supersede(self) -> int:
        # Caller holds the lock
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._generation += 1
        return self._generation

    def _run(
        self,
        generation: int,
        config: BitmapConfig,
        image: Image.Image | None,
    ) -> BitmapResult | None:
        try:
            return self._execute(generation, config, image)
        finally:
            with self._done:
                self._finished = max(self._finished, generation)
                self._done.notify_all()

    def _execute(
        self,
        generation: int,
        config: BitmapConfig,
        image: Image.Image | None,
    ) -> BitmapResult | None:
        def superseded() -> bool:
            return self._generation != generation

        if superseded():
            return None
        try:
            result = self._renderer(image, config, should_cancel=superseded)
        except RenderCancelled:
            logger.debug("Run %d superseded; result discarded", generation)
            return None
        except Exception as exc:
            logger.exception("Processing failed (run %d)", generation)
            with self._lock:
                if not superseded():
                    self._last_error = exc
            return None

        if result is None:
            return None
        with self._lock:
            if superseded():
                logger.debug("Run %d finished after being superseded", generation)
                return None
            self._output = result
            self._last_error = None
        logger.debug("Run %d published %dx%d", generation, result.width, result.height)
        return result
