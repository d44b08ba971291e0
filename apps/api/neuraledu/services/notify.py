import logging
from typing import Any, Callable, Dict, List
logger=logging.getLogger(__name__)
class Notifier:
    """Core -> UI state-change notifications, keyed by session token."""
    def __init__(self):
        self.listeners:Dict[str,List[Callable[[str,Dict[str,Any]],None]]]={}
    def subscribe(self, token:str, fn:Callable[[str,Dict[str,Any]],None]):
        self.listeners.setdefault(token, []).append(fn)
        return lambda: self.unsubscribe(token, fn)
    def unsubscribe(self, token:str, fn):
        fns=self.listeners.get(token, [])
        if fn in fns: fns.remove(fn)
        if not fns: self.listeners.pop(token, None)
    def drop(self, token:str): self.listeners.pop(token, None)
    def emit(self, token:str, kind:str, data:Dict[str,Any]=None):
        for fn in list(self.listeners.get(token, [])):
            try: fn(kind, data or {})
            except Exception: logger.exception("listener for %s failed on %s", token, kind)
