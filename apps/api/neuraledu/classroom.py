import logging, random, time
from typing import Callable, Dict, Optional
from .auth import AuthGate, SessionContext, STUDENT, TEACHER
from .config import section
from .dashboard import DashboardAggregator
from .errors import RoleError, UnknownSessionError, ValidationError
from .media import MediaLibrary, DOCUMENT
from .proctoring import ProctoringStateMachine
from .scoring import ScoringEngine
from .services.devices import CameraSlot, RemoteCamera, RemoteFullscreen
from .services.notify import Notifier
from .softai import QuizSheet, generate
from .store import SessionStore
from .sync import SyncScheduler
from .timers import Countdown, TimerRegistry

logger=logging.getLogger(__name__)
AI_TIMER='ai_unlock'

def ai_delay_seconds()->int:
    return int(section('session').get('ai_delay_ms', 2*60*1000))//1000

def clock_label(seconds:int)->str:
    seconds=max(0, seconds); return f"{seconds//60}:{seconds%60:02d}"

class LiveSession:
    def __init__(self, ctx:SessionContext, fullscreen=None, camera=None):
        self.ctx=ctx; self.fullscreen=fullscreen; self.camera_port=camera
        self.machine:Optional[ProctoringStateMachine]=None; self.camera:Optional[CameraSlot]=None; self.ai_countdown:Optional[Countdown]=None

class Classroom:
    def __init__(self, store:Optional[SessionStore]=None, notifier:Optional[Notifier]=None, timers_factory:Callable=TimerRegistry,
                 rng_factory:Callable=random.Random, fullscreen_factory:Optional[Callable]=None, camera_factory:Optional[Callable]=None,
                 sync_period:Optional[float]=None, exit_warn:Optional[int]=None, ai_delay:Optional[int]=None):
        self.store=store or SessionStore(); self.notifier=notifier or Notifier(); self.rng_factory=rng_factory
        self.auth=AuthGate(self.store, timers_factory); self.scoring=ScoringEngine(self.store); self.media=MediaLibrary(self.store)
        self.dashboard_view=DashboardAggregator(self.store)
        self.sync=SyncScheduler(self.store, self.notifier, self.dashboard_view, self.media, self.scoring, sync_period)
        self.fullscreen_factory=fullscreen_factory or (lambda send: RemoteFullscreen(send))
        self.camera_factory=camera_factory or (lambda send: RemoteCamera(send))
        self.exit_warn=exit_warn; self.ai_delay=ai_delay if ai_delay is not None else ai_delay_seconds()
        self.live:Dict[str,LiveSession]={}

    # lookup
    def session(self, token:str)->LiveSession:
        live=self.live.get(token)
        if live is None or not live.ctx.active: raise UnknownSessionError("No active session.")
        return live
    def _student(self, token:str)->LiveSession:
        live=self.session(token)
        if live.ctx.role!=STUDENT: raise RoleError("Student session required.")
        return live
    def _teacher(self, token:str)->LiveSession:
        live=self.session(token)
        if live.ctx.role!=TEACHER: raise RoleError("Teacher session required.")
        return live
    def _sender(self, token:str):
        return lambda msg: self.notifier.emit(token, 'device', msg)

    # auth
    def register(self, username:str, password:str, begin:bool=True)->SessionContext:
        self.auth.register(username, password)
        return self.login(username, password, begin=begin)

    def login(self, username:str, password:str, begin:bool=True)->SessionContext:
        username=self.auth.authenticate(username, password)
        for old in [t for t,l in self.live.items() if l.ctx.role==STUDENT and l.ctx.username==username]: self.logout(old)
        ctx=self.auth.login(username, password)
        live=LiveSession(ctx, self.fullscreen_factory(self._sender(ctx.token)), self.camera_factory(self._sender(ctx.token)))
        live.machine=ProctoringStateMachine(ctx, self.store, self.scoring, live.fullscreen, self.notifier, self.exit_warn, self._ended)
        live.camera=CameraSlot(ctx, live.camera_port, self.store)
        self.live[ctx.token]=live
        self._start_ai_countdown(live)
        self.notifier.emit(ctx.token, 'documents', self.media.student_view())
        self.notifier.emit(ctx.token, 'score', self.scoring.score(ctx.username))
        self.sync.start(ctx)
        if begin: live.machine.begin()
        return ctx

    def begin(self, token:str, fullscreen_granted:Optional[bool]=None):
        live=self._student(token)
        if fullscreen_granted is not None and hasattr(live.fullscreen, 'granted'): live.fullscreen.granted=fullscreen_granted
        live.machine.begin()
        return live.machine.view()

    def teacher_login(self, username:str, password:str)->SessionContext:
        ctx=self.auth.teacher_login(username, password)
        live=LiveSession(ctx, camera=self.camera_factory(self._sender(ctx.token)))
        live.camera=CameraSlot(ctx, live.camera_port, self.store, setting_name='teacherCam')
        self.live[ctx.token]=live
        self.notifier.emit(ctx.token, 'dashboard', self.dashboard_view.build())
        self.sync.start(ctx)
        return ctx

    def logout(self, token:str):
        live=self.live.get(token)
        if live is None: return
        if live.machine is not None: live.machine.terminate('logout')
        else:
            live.ctx.close(); self._ended(live.ctx, 'logout')

    def _ended(self, ctx:SessionContext, reason:str):
        self.live.pop(ctx.token, None)
        self.notifier.drop(ctx.token)
        logger.info("%s session for %s closed (%s)", ctx.role, ctx.username, reason)

    # proctoring
    def fullscreen_changed(self, token:str, in_fullscreen:bool):
        live=self._student(token); live.machine.on_fullscreen_change(in_fullscreen)
        return live.machine.view()
    def stay(self, token:str, granted:Optional[bool]=None)->bool:
        live=self._student(token)
        if granted is not None and hasattr(live.fullscreen, 'granted'): live.fullscreen.granted=granted
        return live.machine.stay()
    def confirm_exit(self, token:str):
        self._student(token).machine.confirm_exit()

    # scoring
    def select_focus(self, token:str, focus:str)->Dict:
        live=self._student(token)
        self.scoring.on_focus_select(live.ctx.username, focus)
        view=self.scoring.score(live.ctx.username); self.notifier.emit(token, 'score', view)
        return view
    def score(self, token:str)->Dict:
        return self.scoring.score(self._student(token).ctx.username)
    def documents(self, token:str)->Dict:
        self._student(token)
        return self.media.student_view()

    # soft AI
    def _start_ai_countdown(self, live:LiveSession):
        ctx=live.ctx; token=ctx.token
        def _tick(cd):
            self.notifier.emit(token, 'ai_countdown', {"remaining": cd.remaining, "label": clock_label(cd.remaining)})
        def _unlock():
            if not ctx.ai_activated: ctx.ai_unlocked=True
            self.notifier.emit(token, 'ai_unlocked', {"unlocked": ctx.ai_unlocked})
        if self.ai_delay<=0:
            ctx.ai_unlocked=True; return
        live.ai_countdown=Countdown(self.ai_delay, on_tick=_tick, on_expire=_unlock)
        ctx.timers.countdown(AI_TIMER, live.ai_countdown)

    def ai_countdown(self, token:str)->Dict:
        live=self._student(token); cd=live.ai_countdown; remaining=cd.remaining if cd else 0
        return {"remaining": max(0, remaining), "label": clock_label(remaining), "unlocked": live.ctx.ai_unlocked, "activated": live.ctx.ai_activated}

    def _public_content(self, content:Dict)->Dict:
        quiz=dict(content['quiz']); quiz['items']=[{k:v for k,v in q.items() if k!='answer'} for q in quiz['items']]
        return {"summary": content['summary'], "quiz": quiz}

    def activate_ai(self, token:str)->Dict:
        live=self._student(token); ctx=live.ctx
        if ctx.ai_activated: return self._public_content(ctx.ai_content)
        if not ctx.ai_unlocked: raise ValidationError("Soft AI is still locked.")
        ctx.ai_activated=True
        self.scoring.on_ai_activate(ctx.username)
        doc=self.media.latest(DOCUMENT)
        ctx.ai_content=generate(doc['payload'] if doc else '', self.rng_factory())
        ctx.quiz=QuizSheet(ctx.ai_content['quiz']['items'])
        self.store.log_event('ai_activate', ctx.username, f"{ctx.username} activated Soft AI", '#7b2fff')
        self.notifier.emit(token, 'score', self.scoring.score(ctx.username))
        return self._public_content(ctx.ai_content)

    def answer_quiz(self, token:str, index:int, option:str)->Dict:
        live=self._student(token); ctx=live.ctx
        try: index=int(index)
        except (TypeError, ValueError): raise ValidationError(f"Invalid question index: {index!r}")
        if ctx.quiz is None: raise ValidationError("Activate Soft AI first.")
        try: res=ctx.quiz.answer(index, option)
        except IndexError: raise ValidationError(f"No question {index}.")
        if res['scored'] and res['correct']:
            self.scoring.on_quiz_correct_answer(ctx.username)
            self.notifier.emit(token, 'score', self.scoring.score(ctx.username))
        res['summary']=ctx.quiz.summary()
        return res

    # camera
    def toggle_camera(self, token:str, granted:Optional[bool]=None)->bool:
        live=self.session(token)
        if granted is not None and hasattr(live.camera_port, 'granted'): live.camera_port.granted=granted
        return live.camera.toggle()

    # teacher
    def dashboard(self, token:str)->Dict:
        self._teacher(token)
        return self.dashboard_view.build()
    def upload(self, token:str, kind:str, name:str, payload:str, size:Optional[int]=None, content_type:str="")->int:
        live=self._teacher(token)
        return self.media.upload(kind, name, payload, size, content_type, uploader=live.ctx.username)
    def delete_media(self, token:str, media_id:int):
        self._teacher(token); self.media.delete(media_id)
    def save_webrtc(self, token:str, feeds:bool, recording:bool)->Dict:
        self._teacher(token); cfg={"feeds": bool(feeds), "recording": bool(recording)}
        self.store.set_setting('webrtc', cfg)
        return cfg
    def snapshot(self, token:str)->int:
        self._teacher(token); now=time.time()*1000
        return self.store.add('recordings', {"label": f"Snapshot {int(now)}", "ts": now, "kind": "snapshot"})
