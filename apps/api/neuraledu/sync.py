import logging, time
from typing import Optional
from .auth import SessionContext, TEACHER
from .config import section
from .dashboard import DashboardAggregator
from .errors import NeuralEduError
from .media import MediaLibrary
from .scoring import ScoringEngine
from .services.notify import Notifier
from .store import SessionStore

logger=logging.getLogger(__name__)
SYNC_TIMER='sync'

def sync_seconds()->float:
    return int(section('session').get('sync_ms', 3000))/1000.0

class SyncScheduler:
    def __init__(self, store:SessionStore, notifier:Notifier, dashboard:Optional[DashboardAggregator]=None,
                 media:Optional[MediaLibrary]=None, scoring:Optional[ScoringEngine]=None, period:Optional[float]=None):
        self.store=store; self.notifier=notifier; self.period=period or sync_seconds()
        self.dashboard=dashboard or DashboardAggregator(store); self.media=media or MediaLibrary(store); self.scoring=scoring or ScoringEngine(store)

    def start(self, ctx:SessionContext):
        ctx.timers.every(SYNC_TIMER, self.period, lambda: self.refresh(ctx))

    def stop(self, ctx:SessionContext):
        ctx.timers.cancel(SYNC_TIMER)

    def refresh(self, ctx:SessionContext):
        if not ctx.active:
            self.stop(ctx); return
        try:
            if ctx.role==TEACHER:
                self.notifier.emit(ctx.token, 'dashboard', self.dashboard.build())
            else:
                self.notifier.emit(ctx.token, 'documents', self.media.student_view())
                self.notifier.emit(ctx.token, 'score', self.scoring.score(ctx.username))
                self.store.update('sessions', ctx.username, last_seen=time.time()*1000)
        except NeuralEduError as e:
            logger.warning("refresh for %s failed: %s", ctx.username, e)
