"""
Response Cache

Content-addressed store for raw model responses. The key is a hash of the
model, the prompt identity and the document text, so changed inputs never hit
a stale entry. Entries have no TTL; clear the cache whenever evaluation
semantics change.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from pathlib import Path

from llm_doc_bench.domain.entities import PromptUnit
from llm_doc_bench.domain.value_objects import ModelResponse

logger = logging.getLogger(__name__)

_ENTRY_SUFFIX = ".json"


def cache_key(model: str, prompt: PromptUnit, document_text: str) -> str:
    """
    Deterministic key for a model/prompt/document combination

    Returns:
        SHA-256 hex digest of a canonical JSON encoding of the inputs
    """
    payload = json.dumps(
        {
            "model": model,
            "role": prompt.role.value,
            "base_name": prompt.base_name,
            "content": prompt.content,
            "document": document_text,
        },
        sort_keys=True,
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ResponseCache:
    """File-per-entry response cache; every I/O failure degrades to a miss"""

    def __init__(self, directory: str | Path, enabled: bool = True) -> None:
        self.directory = Path(directory)
        self.enabled = enabled

    def _entry_path(self, key: str) -> Path:
        return self.directory / f"{key}{_ENTRY_SUFFIX}"

    def _read(self, key: str) -> ModelResponse | None:
        path = self._entry_path(key)
        if not path.exists():
            return None
        data = json.loads(path.read_text(encoding="utf-8"))
        return ModelResponse.from_dict(data)

    def _write(self, key: str, response: ModelResponse) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._entry_path(key)
        path.write_text(json.dumps(response.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")

    async def lookup(self, key: str) -> ModelResponse | None:
        """Return the cached response, or None on a miss"""
        if not self.enabled:
            return None
        try:
            response = await asyncio.to_thread(self._read, key)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Error retrieving from cache (%s): %s", key, e)
            return None
        if response is not None:
            logger.debug("Retrieved cached response with key: %s", key)
        return response

    async def store(self, key: str, response: ModelResponse) -> None:
        """Persist a response; failures are logged and otherwise ignored"""
        if not self.enabled:
            return
        try:
            await asyncio.to_thread(self._write, key, response)
            logger.debug("Cached response with key: %s", key)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Error saving to cache (%s): %s", key, e)

    def clear(self) -> int:
        """
        Delete every cache entry

        Returns:
            Number of entries removed
        """
        if not self.directory.is_dir():
            return 0
        removed = 0
        for path in self.directory.glob(f"*{_ENTRY_SUFFIX}"):
            try:
                path.unlink()
                removed += 1
            except OSError as e:
                logger.warning("Could not remove cache entry %s: %s", path.name, e)
        logger.info("Cleared %d cache files", removed)
        return removed
