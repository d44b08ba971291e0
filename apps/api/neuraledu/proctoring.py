import logging, time
from typing import Optional
from .auth import SessionContext
from .config import section
from .scoring import ScoringEngine
from .services.devices import FullscreenPort
from .services.notify import Notifier
from .store import SessionStore, READWRITE
from .timers import Countdown

logger=logging.getLogger(__name__)
ENFORCED='enforced'; EXITED='exited'; TERMINATED='terminated'
COUNTDOWN_TIMER='fs_countdown'
END_MESSAGES={"logout": "{u} ended session", "timeout": "{u} exited (fullscreen timeout)", "voluntary": "{u} exited (confirmed exit)"}

def exit_warn_sec()->int:
    return int(section('session').get('exit_warn_sec', 20))

class ProctoringStateMachine:
    def __init__(self, ctx:SessionContext, store:SessionStore, scoring:ScoringEngine, port:FullscreenPort,
                 notifier:Optional[Notifier]=None, duration:Optional[int]=None, on_terminated=None):
        self.ctx=ctx; self.store=store; self.scoring=scoring; self.port=port; self.notifier=notifier or Notifier()
        self.duration=duration or exit_warn_sec(); self.on_terminated=on_terminated
        self.state=ENFORCED; self.blocked=False; self.countdown:Optional[Countdown]=None; self.end_reason=None

    def _emit(self, kind:str, **data):
        self.notifier.emit(self.ctx.token, kind, data)
    def _set_fs(self, in_fs:bool):
        changes={"fs_in_fullscreen": in_fs}
        if not in_fs: changes["last_exit"]=time.time()*1000
        self.store.update('sessions', self.ctx.username, **changes)
    def _request(self)->bool:
        try: return bool(self.port.request())
        except PermissionError:
            return False

    def view(self)->dict:
        return {"state": self.state, "blocked": self.blocked, "countdown": self.countdown.snapshot() if self.countdown and self.state==EXITED else None}

    def begin(self):
        if self.state==TERMINATED or not self.ctx.active: return
        if self.state==EXITED:
            # only a granted request leaves EXITED; the countdown keeps running otherwise
            if self._request(): self._enter()
            else: self._emit('fullscreen', **self.view())
            return
        if self._request():
            self.state=ENFORCED; self.blocked=False; self._set_fs(True)
        else:
            self.state=ENFORCED; self.blocked=True
            logger.info("fullscreen blocked for %s", self.ctx.username)
            self.store.log_event('fs_blocked', self.ctx.username, f"{self.ctx.username} fullscreen blocked", '#ff9f0a')
        self._emit('fullscreen', **self.view())

    def on_fullscreen_change(self, in_fullscreen:bool):
        if self.state==TERMINATED or not self.ctx.active: return
        if in_fullscreen: self._enter()
        elif self.state==ENFORCED: self._exit()

    def _enter(self):
        if self.state==ENFORCED and not self.blocked: return
        if self.state==EXITED:
            self.ctx.timers.cancel(COUNTDOWN_TIMER); self.countdown=None
        self.state=ENFORCED; self.blocked=False; self._set_fs(True)
        self.store.log_event('fs_enter', self.ctx.username, f"{self.ctx.username} re-entered fullscreen", '#00ff88')
        self._emit('fullscreen', **self.view())

    def _exit(self):
        u=self.ctx.username
        self.state=EXITED
        with self.store.transaction('sessions', READWRITE) as sessions:
            sess=sessions.get(u)
            if sess is not None:
                sess.update(fs_in_fullscreen=False, last_exit=time.time()*1000, fs_exit_count=(sess.get('fs_exit_count') or 0)+1)
                sessions.put(sess)
        # Session and Student counters move in lockstep; the Student write re-evaluates badges.
        self.scoring.on_fs_exit(u)
        self.store.log_event('fs_exit', u, f"{u} exited fullscreen", '#ff2d55')
        self.countdown=Countdown(self.duration, on_tick=self._on_tick, on_expire=lambda: self.terminate('timeout'))
        self.ctx.timers.countdown(COUNTDOWN_TIMER, self.countdown)
        self._emit('fullscreen', **self.view())

    def _on_tick(self, cd:Countdown):
        self._emit('countdown', **cd.snapshot())

    def stay(self)->bool:
        if self.state==TERMINATED: return False
        if self._request():
            self._enter(); return True
        if self.state==ENFORCED: self.blocked=True
        self._emit('fullscreen', **self.view())
        return False

    def confirm_exit(self):
        self.terminate('voluntary')

    def terminate(self, reason:str='logout'):
        if self.state==TERMINATED: return
        self.state=TERMINATED; self.end_reason=reason; self.countdown=None
        u=self.ctx.username
        self.ctx.close()
        try: self._set_fs(False)
        except Exception: logger.exception("could not clear fullscreen flag for %s", u)
        self.store.log_event('session_end', u, END_MESSAGES.get(reason, "{u} ended session").format(u=u), '#ff9f0a' if reason=='timeout' else '#6b8caa')
        try: self.port.leave()
        except Exception: logger.warning("leaving fullscreen failed for %s", u, exc_info=True)
        logger.info("session for %s terminated (%s)", u, reason)
        self._emit('session_ended', reason=reason)
        if self.on_terminated: self.on_terminated(self.ctx, reason)
