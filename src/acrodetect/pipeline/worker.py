"""Inference Worker - Per-page inference behind a request/response channel.

A single background thread consumes InferenceRequests from one queue and
posts Results to another. At most one request is in flight; the page loop
submits a page, waits for its result, then moves on.

The same ``run_inference`` function is used inline when the worker is
disabled, so both paths produce identical results.
"""

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from acrodetect.config import settings
from acrodetect.models import (
    Detection,
    Err,
    ErrorCode,
    Ok,
    PipelineError,
    RasterFrame,
    Result,
)
from acrodetect.pipeline.stage_decode import decode_predictions, to_detections
from acrodetect.pipeline.stage_encode import encode_buffer
from acrodetect.pipeline.stage_nms import non_max_suppression
from acrodetect.pipeline.stage_order import sort_reading_order
from acrodetect.pipeline.stage_session import SessionCache, run_session

logger = logging.getLogger(__name__)

_STOP = object()
ABANDON_JOIN_SECONDS = 0.1


@dataclass(frozen=True)
class InferenceRequest:
    """One page submitted for inference."""

    image_data: Union[bytes, np.ndarray]
    image_width: int
    image_height: int
    model_path: str
    confidence_threshold: float
    is_first_page: bool

    @classmethod
    def from_frame(
        cls,
        frame: RasterFrame,
        model_path: str,
        confidence_threshold: float,
        is_first_page: bool,
    ) -> "InferenceRequest":
        return cls(
            image_data=frame.pixels.reshape(-1),
            image_width=frame.width,
            image_height=frame.height,
            model_path=model_path,
            confidence_threshold=confidence_threshold,
            is_first_page=is_first_page,
        )


def run_inference(
    request: InferenceRequest,
    cache: SessionCache,
    iou_threshold: Optional[float] = None,
) -> Result[list[Detection]]:
    """Run the full per-page inference: encode, infer, decode, suppress, sort.

    The session cache is invalidated after any failure so the next page
    retries model creation.
    """
    try:
        session = cache.get(request.model_path, refresh=request.is_first_page)
    except PipelineError as exc:
        cache.invalidate()
        return Err.from_exception(exc)

    try:
        tensor = encode_buffer(request.image_data, request.image_width, request.image_height)
        output = run_session(session, tensor)
        candidates = decode_predictions(
            output,
            confidence_threshold=request.confidence_threshold,
            target_size=request.image_width,
        )
        kept = non_max_suppression(candidates, iou_threshold)
    except Exception as exc:
        cache.invalidate()
        return Err(ErrorCode.INFERENCE_FAILED, f"{type(exc).__name__}: {exc}")

    detections = sort_reading_order(to_detections(kept))
    logger.debug(
        "Inference kept %d of %d candidates", len(detections), len(candidates)
    )
    return Ok(detections)


class InferenceWorker:
    """Background thread running ``run_inference`` one request at a time.

    Usage::

        with InferenceWorker(cache) as worker:
            result = worker.infer(request)
    """

    def __init__(
        self,
        cache: SessionCache,
        iou_threshold: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        self.cache = cache
        self.iou_threshold = iou_threshold
        self.timeout = timeout or settings.worker_timeout_seconds
        self._requests: queue.Queue = queue.Queue()
        self._responses: queue.Queue = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._in_flight = False
        self._broken = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._thread = threading.Thread(
            target=self._run, name="acrodetect-inference", daemon=True
        )
        self._thread.start()

    def submit(self, request: InferenceRequest) -> None:
        """Queue a request.

        Raises:
            RuntimeError: If a request is already in flight, or the worker
                gave up waiting on an earlier one.
        """
        if self._broken:
            raise RuntimeError("Inference worker is unusable after a timed out request")
        if self._in_flight:
            raise RuntimeError("An inference request is already in flight")
        self.start()
        self._in_flight = True
        self._requests.put(request)

    def collect(self, timeout: Optional[float] = None) -> Result[list[Detection]]:
        """Wait for the result of the in-flight request."""
        if not self._in_flight:
            raise RuntimeError("No inference request in flight")
        wait = timeout or self.timeout
        try:
            response = self._responses.get(timeout=wait)
        except queue.Empty:
            self._broken = True
            return Err(ErrorCode.INFERENCE_FAILED, f"Inference timed out after {wait:.0f}s")
        self._in_flight = False
        return response

    def infer(self, request: InferenceRequest) -> Result[list[Detection]]:
        self.submit(request)
        return self.collect()

    def close(self) -> None:
        """Stop the thread; an in-flight request is allowed to finish.

        After a timed out request the stuck thread is abandoned rather than
        waited on again.
        """
        if self._thread is None:
            return
        self._requests.put(_STOP)
        self._thread.join(timeout=ABANDON_JOIN_SECONDS if self._broken else self.timeout)
        self._thread = None

    def __enter__(self) -> "InferenceWorker":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _run(self) -> None:
        while True:
            request = self._requests.get()
            if request is _STOP:
                break
            try:
                response = run_inference(request, self.cache, self.iou_threshold)
            except Exception as exc:
                logger.exception("Inference worker failed")
                response = Err.from_exception(exc, context="Inference worker")
            self._responses.put(response)
