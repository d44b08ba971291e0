import asyncio, inspect, logging
from typing import Callable, Dict, Optional

logger=logging.getLogger(__name__)

class PeriodicTask:
    def __init__(self, name:str, period:float, fn:Callable):
        self.name=name; self.period=period; self.fn=fn; self._task:Optional[asyncio.Task]=None
    def start(self):
        self._task=asyncio.get_running_loop().create_task(self._run(), name=f"timer:{self.name}")
        return self
    async def _run(self):
        try:
            while True:
                await asyncio.sleep(self.period)
                try:
                    res=self.fn()
                    if inspect.isawaitable(res): await res
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("timer %s tick failed", self.name)
        except asyncio.CancelledError:
            pass
    def cancel(self):
        if self._task is not None and not self._task.done(): self._task.cancel()
        self._task=None
    @property
    def running(self)->bool:
        return self._task is not None and not self._task.done()

class Countdown:
    """Integer countdown decremented once per tick; fires on_expire exactly once at 0."""
    def __init__(self, duration:int, on_tick:Optional[Callable]=None, on_expire:Optional[Callable]=None):
        self.duration=int(duration); self.remaining=int(duration); self.on_tick=on_tick; self.on_expire=on_expire; self.expired=False
    @property
    def fraction_elapsed(self)->float:
        return 1.0 - (max(0,self.remaining)/self.duration) if self.duration else 1.0
    def snapshot(self)->dict:
        return {"remaining": self.remaining, "duration": self.duration, "fraction_elapsed": round(self.fraction_elapsed,4)}
    def tick(self)->bool:
        if self.expired: return True
        self.remaining-=1
        if self.on_tick: self.on_tick(self)
        if self.remaining<=0:
            self.expired=True
            if self.on_expire: self.on_expire()
        return self.expired

class TimerRegistry:
    """Named periodic tasks; starting a name again replaces the running task."""
    def __init__(self):
        self._tasks:Dict[str,PeriodicTask]={}
    def _make(self, name, period, fn):
        return PeriodicTask(name, period, fn).start()
    def every(self, name:str, period:float, fn:Callable):
        self.cancel(name)
        task=self._make(name, period, fn); self._tasks[name]=task
        return task
    def countdown(self, name:str, countdown:Countdown, period:float=1.0):
        def _tick():
            if countdown.tick(): self.cancel(name)
        return self.every(name, period, _tick)
    def cancel(self, name:str):
        task=self._tasks.pop(name, None)
        if task is not None: task.cancel()
    def clear_all(self):
        for name in list(self._tasks): self.cancel(name)
    def active(self, name:str)->bool:
        return name in self._tasks
    @property
    def names(self):
        return sorted(self._tasks)
