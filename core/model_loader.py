"""
Fetches the classifier model and its label metadata (URL or local path) and
builds a ready-to-use inference engine.
"""

from __future__ import annotations

import hashlib
import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from core.errors import ModelLoadFailure
from core.ranking import synthesize_labels
from core.settings import Settings
from engines import InferenceEngine, create_engine

logger = logging.getLogger(__name__)

# Key names seen in Teachable Machine / Keras metadata documents, in priority order
_LABEL_KEYS = ("labels", "classNames", "classes")


@dataclass(frozen=True)
class ModelBundle:
    engine: InferenceEngine
    labels: tuple[str, ...]


def _is_url(source: str) -> bool:
    return urlparse(source).scheme in ("http", "https")


def fetch_artifact(source: str, cache_dir: Path) -> Path:
    """
    Return a local path for source. URLs are downloaded once into cache_dir;
    local paths must exist.
    """
    if not _is_url(source):
        path = Path(source).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"{path} does not exist")
        return path
    name = Path(urlparse(source).path).name or "artifact"
    digest = hashlib.sha1(source.encode("utf-8")).hexdigest()[:12]
    target = cache_dir / f"{digest}-{name}"
    if target.is_file():
        return target
    cache_dir.mkdir(parents=True, exist_ok=True)
    partial = target.with_suffix(target.suffix + ".part")
    logger.info("Downloading %s", source)
    try:
        urllib.request.urlretrieve(source, partial)
        partial.replace(target)
    finally:
        partial.unlink(missing_ok=True)
    return target


def parse_labels(text: str) -> list[str]:
    """
    Labels from a metadata document: a JSON object with a label array under
    one of the known keys, a bare JSON array, or a labels.txt with one
    "<index> <name>" (or just "<name>") per line.
    """
    stripped = text.strip()
    if not stripped:
        return []
    if stripped[0] in "{[":
        document: Any = json.loads(stripped)
        if isinstance(document, list):
            return [str(v) for v in document]
        if isinstance(document, dict):
            for key in _LABEL_KEYS:
                value = document.get(key)
                if isinstance(value, list) and value:
                    return [str(v) for v in value]
        return []
    labels: list[str] = []
    for line in stripped.splitlines():
        line = line.strip()
        if not line:
            continue
        head, _, rest = line.partition(" ")
        labels.append(rest.strip() if head.isdigit() and rest.strip() else line)
    return labels


def load_labels(source: str | None, cache_dir: Path) -> list[str]:
    """Label set from source; [] when it is absent or unusable."""
    if not source:
        return []
    try:
        path = fetch_artifact(source, cache_dir)
        labels = parse_labels(path.read_text(encoding="utf-8"))
    except (OSError, urllib.error.URLError, ValueError, UnicodeDecodeError) as e:
        logger.warning("Could not load label metadata from %s: %s", source, e)
        return []
    if not labels:
        logger.warning("No labels found in %s", source)
    return labels


def load_model(settings: Settings) -> ModelBundle:
    """Retrieve, load and pair the model with its labels. Raises ModelLoadFailure."""
    labels = load_labels(settings.metadata_source, settings.cache_dir)
    try:
        model_path = fetch_artifact(settings.model_source, settings.cache_dir)
    except (OSError, urllib.error.URLError) as e:
        raise ModelLoadFailure(f"Could not retrieve model {settings.model_source}: {e}") from e
    engine = create_engine(model_path)
    try:
        engine.load()
        width = engine.output_width
    except Exception as e:
        engine.close()
        raise ModelLoadFailure(f"Could not load model {model_path.name}: {e}") from e
    if not labels:
        labels = synthesize_labels(width)
        logger.info("Using %d placeholder labels", width)
    elif len(labels) != width:
        logger.warning(
            "Metadata lists %d labels but the model outputs %d scores", len(labels), width
        )
    logger.info("Model ready: %s, labels=%s", engine.display_name, labels)
    return ModelBundle(engine=engine, labels=tuple(labels))
