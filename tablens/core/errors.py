"""Error types raised to the caller. None of them are retried."""

from __future__ import annotations

_SNAPSHOT_HINT = "Run `tablens snapshot` to refresh refs."


class TabLensError(Exception):
    """Base class for every recoverable, caller-facing failure."""


class NoTabsError(TabLensError):
    def __init__(self, port: int | str) -> None:
        self.port = port
        super().__init__(
            f"No Chrome page tabs found on port {port}. "
            "Is Chrome running with --remote-debugging-port?"
        )


class TabNotFoundError(TabLensError):
    def __init__(self, short_id: str, available: list[str]) -> None:
        self.short_id = short_id
        self.available = available
        listing = "\n  ".join(available) if available else "(none)"
        super().__init__(f'Tab "{short_id}" not found. Available tabs:\n  {listing}')


class TabClosedError(TabLensError):
    """The tab was listed but closed before it could be attached."""

    def __init__(self, short_id: str = "") -> None:
        self.short_id = short_id
        target = f" {short_id}" if short_id else ""
        super().__init__(
            f"Tab{target} closed before it could be attached. "
            "Run `tablens tabs` to list the open tabs."
        )


class NoSnapshotError(TabLensError):
    def __init__(self) -> None:
        super().__init__(
            "No snapshot taken yet. Run `tablens snapshot` first to get element refs."
        )


class RefNotFoundError(TabLensError):
    """Raised when a ref is absent from the current ref table."""

    _SAMPLE_SIZE = 10

    def __init__(self, ref: str, available: list[str]) -> None:
        self.ref = ref
        self.available = available
        sample = ", ".join(available[: self._SAMPLE_SIZE]) or "(none)"
        more = "..." if len(available) > self._SAMPLE_SIZE else ""
        super().__init__(
            f'Ref "{ref}" not found. Available refs: {sample}{more}. {_SNAPSHOT_HINT}'
        )


class StaleElementError(TabLensError):
    def __init__(self, ref: str = "") -> None:
        self.ref = ref
        target = f" for {ref}" if ref else ""
        super().__init__(
            f"Element{target} no longer exists in the DOM. {_SNAPSHOT_HINT}"
        )


class ActionError(TabLensError):
    """An interaction reached the page but failed there (JS error, bad option, ...)."""
