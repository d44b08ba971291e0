import logging, time
from typing import Any, Callable, Optional, Protocol

logger=logging.getLogger(__name__)

class FullscreenPort(Protocol):
    def request(self)->bool: ...
    def leave(self)->None: ...

class CameraPort(Protocol):
    def acquire(self)->Any: ...
    def release(self, stream:Any)->None: ...

class RemoteFullscreen:
    """Fullscreen as reported by the browser over the session socket."""
    def __init__(self, send:Optional[Callable[[dict],None]]=None, granted:bool=False):
        self.send=send; self.granted=granted
    def request(self)->bool:
        if self.send: self.send({"code":"fs_request"})
        return self.granted
    def leave(self):
        if self.send: self.send({"code":"fs_leave"})

class RemoteCamera:
    def __init__(self, send:Optional[Callable[[dict],None]]=None, granted:bool=False):
        self.send=send; self.granted=granted
    def acquire(self):
        if not self.granted: raise PermissionError("camera access denied")
        return {"stream": "remote", "since": time.time()*1000}
    def release(self, stream):
        if self.send: self.send({"code":"cam_stop"})

class CameraSlot:
    def __init__(self, ctx, port:CameraPort, store, setting_name:Optional[str]=None):
        self.ctx=ctx; self.port=port; self.store=store; self.stream=None
        self.setting_name=setting_name or f"cam_{ctx.username}"
        # every context exit releases the stream once
        ctx.resources.callback(self._release)
    @property
    def active(self)->bool: return self.stream is not None
    def _write_state(self, active:bool):
        val=active if self.ctx.role=='teacher' else {"active": active, "ts": time.time()*1000}
        self.store.set_setting(self.setting_name, val)
    def _release(self):
        if self.stream is None: return
        stream, self.stream=self.stream, None
        try: self.port.release(stream)
        except Exception: logger.exception("camera release failed for %s", self.ctx.username)
        self._write_state(False)
    def start(self)->bool:
        if self.active: return True
        try:
            self.stream=self.port.acquire()
        except PermissionError:
            logger.info("camera denied for %s", self.ctx.username)
            self._write_state(False)
            self.store.log_event('camera_denied', self.ctx.username, f"{self.ctx.username} camera access denied")
            return False
        self._write_state(True)
        self.store.log_event('camera_on', self.ctx.username, f"{self.ctx.username} started camera", '#00d4ff')
        return True
    def stop(self):
        if not self.active: return
        self._release()
        self.store.log_event('camera_off', self.ctx.username, f"{self.ctx.username} stopped camera")
    def toggle(self)->bool:
        if self.active: self.stop(); return False
        return self.start()
