from tablens.cache.store import CacheKey, CacheStore
from tablens.core.errors import (
    ActionError,
    NoSnapshotError,
    NoTabsError,
    RefNotFoundError,
    StaleElementError,
    TabClosedError,
    TabLensError,
    TabNotFoundError,
)
from tablens.core.lens import SnapshotResult, TabLens
from tablens.core.types import (
    AXRecord,
    RefEntry,
    RefTable,
    RenderPolicy,
    RoleKind,
    TabRecord,
    TargetInfo,
    TreeNode,
)
from tablens.extractors._cdp import build_tree, records_from_cdp
from tablens.formatter.formatter import EMPTY_PAGE, Snapshot, SnapshotRenderer
from tablens.tabs.tab_map import TabMap

__all__ = [
    "AXRecord",
    "CacheKey",
    "CacheStore",
    "EMPTY_PAGE",
    "RefEntry",
    "RefTable",
    "RenderPolicy",
    "RoleKind",
    "Snapshot",
    "SnapshotRenderer",
    "SnapshotResult",
    "TabLens",
    "TabMap",
    "TabRecord",
    "TargetInfo",
    "TreeNode",
    "build_tree",
    "records_from_cdp",
    # Errors
    "ActionError",
    "NoSnapshotError",
    "NoTabsError",
    "RefNotFoundError",
    "StaleElementError",
    "TabClosedError",
    "TabLensError",
    "TabNotFoundError",
]
