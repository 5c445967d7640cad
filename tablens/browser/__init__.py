from tablens.browser.connection import BrowserConnection, TabHandle

__all__ = ["BrowserConnection", "TabHandle"]
