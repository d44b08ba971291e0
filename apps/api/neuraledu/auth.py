import logging, time, uuid
from contextlib import ExitStack
from typing import Optional, Set
from .config import section
from .errors import ValidationError, WeakPasswordError, UsernameTakenError, UserNotFoundError, IncorrectPasswordError, InvalidCredentialsError
from .store import SessionStore, READWRITE
from .timers import TimerRegistry

logger=logging.getLogger(__name__)
STUDENT='student'; TEACHER='teacher'
MIN_PASSWORD=4

def teacher_credentials():
    a=section('auth')
    return str(a.get('teacher_username','teacher1')), str(a.get('teacher_password','123456'))

def new_student(username:str, password:str)->dict:
    return {"username": username, "password": password, "points": 0, "badges": [], "sessions": 0, "high_focus_sessions": 0,
            "ai_sessions": 0, "quiz_correct": 0, "fs_exit_count": 0}

def new_session(username:str, now:Optional[float]=None)->dict:
    now=now if now is not None else time.time()*1000
    return {"username": username, "focus": None, "points": 0, "start_time": now, "last_seen": now, "ai_used": False,
            "fs_in_fullscreen": False, "fs_exit_count": 0, "last_exit": None}

class SessionContext:
    """In-process state of one logged-in user; discarded at logout or termination."""
    def __init__(self, username:str, role:str, timers:Optional[TimerRegistry]=None):
        self.token=uuid.uuid4().hex; self.username=username; self.role=role
        self.started_at=time.time()*1000; self.timers=timers or TimerRegistry(); self.resources=ExitStack()
        self.active=True; self.ai_unlocked=False; self.ai_activated=False; self.ai_content=None; self.quiz=None
        self.answered:Set[int]=set()
    def close(self):
        if not self.active: return
        self.active=False
        self.timers.clear_all()
        self.resources.close()
    def __repr__(self): return f"<SessionContext {self.role}:{self.username} active={self.active}>"

class AuthGate:
    def __init__(self, store:SessionStore, timers_factory=TimerRegistry):
        self.store=store; self.timers_factory=timers_factory
    def _check_fields(self, username:str, password:str)->str:
        username=(username or '').strip()
        if not username or not password: raise ValidationError("All fields required.")
        if username==teacher_credentials()[0]: raise ValidationError("Username reserved.")
        return username
    def register(self, username:str, password:str)->dict:
        username=self._check_fields(username, password)
        with self.store.transaction('students', READWRITE) as students:
            if students.get(username) is not None: raise UsernameTakenError("Username already taken.")
            if len(password)<MIN_PASSWORD: raise WeakPasswordError(f"Password min {MIN_PASSWORD} characters.")
            rec=new_student(username, password); students.put(rec)
        logger.info("registered student %s", username)
        return rec
    def authenticate(self, username:str, password:str)->str:
        username=self._check_fields(username, password)
        stu=self.store.get('students', username)
        if stu is None: raise UserNotFoundError("User not found.")
        if stu['password']!=password: raise IncorrectPasswordError("Incorrect password.")
        return username
    def login(self, username:str, password:str)->SessionContext:
        username=self.authenticate(username, password)
        self.store.put('sessions', new_session(username))
        self.store.log_event('session_start', username, f"{username} started a session", '#00d4ff')
        logger.info("student %s logged in", username)
        return SessionContext(username, STUDENT, self.timers_factory())
    def teacher_login(self, username:str, password:str)->SessionContext:
        if ((username or '').strip(), password)!=teacher_credentials(): raise InvalidCredentialsError("Invalid credentials.")
        return SessionContext(teacher_credentials()[0], TEACHER, self.timers_factory())
