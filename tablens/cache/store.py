"""Cache store — durable JSON documents shared between CLI invocations."""

from __future__ import annotations

import json
import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger

DEFAULT_CACHE_DIR = os.path.join(os.path.expanduser("~"), ".tablens")

_AGENT_RE = re.compile(r"[A-Za-z0-9._-]+")
_TMP_SUFFIX = ".tmp"


def validate_agent(agent: str | None) -> str | None:
    """Agent labels become directory names, so only a safe subset is accepted."""
    if agent is None or agent == "":
        return None
    if not _AGENT_RE.fullmatch(agent) or agent in (".", ".."):
        raise ValueError(
            f"Invalid agent id {agent!r}: use letters, digits, '.', '_' or '-'"
        )
    return agent


@dataclass(frozen=True)
class CacheKey:
    """(agent partition, endpoint, document name) address of one cached document."""

    endpoint: int | str
    name: str
    agent: str | None = None

    def __post_init__(self) -> None:
        validate_agent(self.agent)

    @property
    def filename(self) -> str:
        return f"{self.endpoint}-{self.name}.json"


class CacheStore:
    """
    Filesystem key -> document store.

    Directory layout::

        {cache_dir}/
            shared/                      # callers without an agent id
                9222-tabs.json
                9222-ABCDEF12.refs.json
            agents/{agent_id}/           # one isolated partition per agent id
                9222-tabs.json

    Every put writes a uniquely named temp file beside the target and
    renames it into place, so readers only ever see a whole document.
    Concurrent writers race on the rename and the last one wins.
    """

    def __init__(self, cache_dir: str | os.PathLike | None = None) -> None:
        self._dir = Path(cache_dir or DEFAULT_CACHE_DIR).expanduser()

    def partition_dir(self, agent: str | None = None) -> Path:
        agent = validate_agent(agent)
        if agent is None:
            return self._dir / "shared"
        return self._dir / "agents" / agent

    def path_for(self, key: CacheKey) -> Path:
        return self.partition_dir(key.agent) / key.filename

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def put(self, key: CacheKey, document: dict[str, Any]) -> None:
        """Atomically replace the document stored at key."""
        target = self.path_for(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(document, indent=2)

        fd, tmp_path = tempfile.mkstemp(
            dir=target.parent, prefix=f".{target.name}.", suffix=_TMP_SUFFIX
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, target)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise
        logger.debug(f"cache put {target} ({len(payload)} bytes)")

    def get(self, key: CacheKey) -> dict[str, Any] | None:
        """Return the stored document, or None if absent or unreadable."""
        path = self.path_for(key)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        try:
            doc = json.loads(raw)
        # JSONDecodeError and UnicodeDecodeError are both ValueErrors
        except ValueError as exc:
            logger.warning(f"Ignoring corrupt cache document {path}: {exc}")
            return None
        if not isinstance(doc, dict):
            logger.warning(f"Ignoring corrupt cache document {path}: not an object")
            return None
        return doc

    def delete(self, key: CacheKey) -> bool:
        """Delete a document. Returns True if it existed."""
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            return False
        return True

    def clear(self, agent: str | None = None) -> int:
        """Remove every document in one partition. Returns the number of files removed."""
        part = self.partition_dir(agent)
        if not part.is_dir():
            return 0
        count = sum(1 for p in part.iterdir() if p.is_file())
        shutil.rmtree(part)
        logger.debug(f"cleared cache partition {part} ({count} files)")
        return count
