"""Inference Session Stage - Model resolution and ONNX session caching.

Model identifiers can be:
- a registry alias ("FFDNet-S", "FFDNet-L"), downloaded on first use
- a path to a local .onnx file
- an http(s) URL, downloaded into the model cache directory

Creating an ONNX Runtime session is expensive, so one session is kept in a
SessionCache and reused across the pages of a document.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional
from urllib.parse import urlparse

import numpy as np
import onnxruntime as ort
import requests
from huggingface_hub import hf_hub_download

from acrodetect.config import settings
from acrodetect.models import ErrorCode, PipelineError

logger = logging.getLogger(__name__)

INPUT_NAME = "images"
OUTPUT_NAME = "output0"

DOWNLOAD_TIMEOUT = 60
CHUNK_SIZE = 1 << 20


@dataclass(frozen=True)
class ModelSpec:
    """A named detection model and where to fetch it from."""

    name: str
    filename: str
    description: str
    url: Optional[str] = None
    repo_id: Optional[str] = None

    @property
    def source(self) -> str:
        if self.repo_id:
            return f"hf://{self.repo_id}/{self.filename}"
        return self.url or ""


MODEL_REGISTRY: dict[str, ModelSpec] = {
    "FFDNet-S": ModelSpec(
        name="FFDNet-S",
        filename="FFDNet-S.onnx",
        description="Small form field detector, fast on CPU",
        url="https://us-beautiful-space.nyc3.digitaloceanspaces.com/commonforms/FFDNet-S.onnx",
    ),
    "FFDNet-L": ModelSpec(
        name="FFDNet-L",
        filename="FFDNet-L.onnx",
        description="Large form field detector, more accurate and slower",
        repo_id="jbarrow/FFDNet-L-cpu",
    ),
}

SessionFactory = Callable[[str, list[str]], Any]


def download_model(url: str, destination: Path) -> Path:
    """Download ``url`` to ``destination`` unless it already exists."""
    if destination.is_file():
        logger.debug("Using cached model %s", destination)
        return destination

    destination.parent.mkdir(parents=True, exist_ok=True)
    partial = destination.with_suffix(destination.suffix + ".part")
    logger.info("Downloading model from %s", url)
    try:
        with requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT) as response:
            response.raise_for_status()
            with open(partial, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    f.write(chunk)
        partial.replace(destination)
    except (requests.RequestException, OSError) as exc:
        partial.unlink(missing_ok=True)
        raise PipelineError(
            ErrorCode.MODEL_LOAD_FAILED,
            f"Failed to download model from {url}: {exc}",
        ) from exc
    return destination


def resolve_model_path(identifier: str, cache_dir: Optional[Path] = None) -> str:
    """Resolve a model identifier to a local ONNX file path.

    Raises:
        PipelineError: ``model_load_failed`` if the model cannot be found or fetched.
    """
    cache_dir = Path(cache_dir or settings.model_cache_dir).expanduser()

    if Path(identifier).expanduser().is_file():
        return str(Path(identifier).expanduser())

    spec = MODEL_REGISTRY.get(identifier)
    if spec is not None and spec.repo_id:
        try:
            return hf_hub_download(repo_id=spec.repo_id, filename=spec.filename)
        except Exception as exc:
            raise PipelineError(
                ErrorCode.MODEL_LOAD_FAILED,
                f"Failed to fetch {spec.name} from {spec.repo_id}: {type(exc).__name__}: {exc}",
            ) from exc
    if spec is not None and spec.url:
        return str(download_model(spec.url, cache_dir / spec.filename))

    if identifier.startswith(("http://", "https://")):
        filename = Path(urlparse(identifier).path).name or "model.onnx"
        return str(download_model(identifier, cache_dir / filename))

    raise PipelineError(
        ErrorCode.MODEL_LOAD_FAILED,
        f"Unknown model '{identifier}'. Use a local .onnx path, a URL, "
        f"or one of: {', '.join(sorted(MODEL_REGISTRY))}",
    )


def create_onnx_session(model_path: str, providers: list[str]) -> ort.InferenceSession:
    return ort.InferenceSession(model_path, providers=providers)


def run_session(session: Any, tensor: np.ndarray) -> np.ndarray:
    """Run the detector on one input tensor and return ``output0``."""
    outputs = session.run([OUTPUT_NAME], {INPUT_NAME: tensor})
    return np.asarray(outputs[0])


class SessionCache:
    """Holds at most one inference session, keyed by model identifier.

    The session is recreated when the model changes, when a caller asks for a
    refresh (first page of a document), or after :meth:`invalidate`.
    """

    def __init__(
        self,
        providers: Optional[list[str]] = None,
        cache_dir: Optional[Path] = None,
        session_factory: Optional[SessionFactory] = None,
    ):
        self.providers = providers or list(settings.onnx_providers)
        self.cache_dir = cache_dir or settings.model_cache_dir
        self._factory = session_factory or create_onnx_session
        self._session: Any = None
        self._model_key: Optional[str] = None
        self.resolved_path: Optional[str] = None

    @property
    def is_loaded(self) -> bool:
        return self._session is not None

    @property
    def model_key(self) -> Optional[str]:
        return self._model_key

    def get(self, model_path: str, refresh: bool = False) -> Any:
        """Return a session for ``model_path``, creating it if needed.

        Raises:
            PipelineError: ``model_load_failed`` if the model cannot be resolved
                or the session cannot be created.
        """
        if not refresh and self._session is not None and model_path == self._model_key:
            return self._session

        self.invalidate()
        resolved = resolve_model_path(model_path, self.cache_dir)
        try:
            session = self._factory(resolved, self.providers)
        except Exception as exc:
            raise PipelineError(
                ErrorCode.MODEL_LOAD_FAILED,
                f"Failed to create inference session for {resolved}: {type(exc).__name__}: {exc}",
            ) from exc

        logger.info("Loaded model %s (%s)", model_path, ", ".join(self.providers))
        self._session = session
        self._model_key = model_path
        self.resolved_path = resolved
        return session

    def invalidate(self) -> None:
        self._session = None
        self._model_key = None
        self.resolved_path = None
