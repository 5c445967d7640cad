from tablens.extractors._cdp import build_tree, fetch_ax_records, record_from_cdp, records_from_cdp
from tablens.extractors.roles import classify, normalize_role

__all__ = [
    "build_tree",
    "classify",
    "fetch_ax_records",
    "normalize_role",
    "record_from_cdp",
    "records_from_cdp",
]
