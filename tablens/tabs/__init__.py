from tablens.tabs.tab_map import LAST_KEY, NEXT_KEY, TabMap, reconcile, tab_key

__all__ = ["LAST_KEY", "NEXT_KEY", "TabMap", "reconcile", "tab_key"]
