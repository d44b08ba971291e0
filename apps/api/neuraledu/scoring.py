import logging, time
from typing import Callable, Dict, List, NamedTuple
from .errors import ValidationError, UserNotFoundError
from .store import SessionStore, READWRITE

logger=logging.getLogger(__name__)

FOCUS_PTS={"High": 100, "Medium": 50, "Low": 10}
FOCUS_COLOR={"High": "#00ff88", "Medium": "#ffd60a", "Low": "#ff2d55"}
QUIZ_BONUS=25
LEVEL_XP=200; SCORE_CAP=500

class Badge(NamedTuple):
    id: str
    label: str
    predicate: Callable[[Dict], bool]

BADGES:List[Badge]=[
    Badge('starter', 'First Login', lambda s: s.get('sessions',0)>=1),
    Badge('pts50', '50 Points', lambda s: s.get('points',0)>=50),
    Badge('pts100', '100 Points', lambda s: s.get('points',0)>=100),
    Badge('high_flyer', 'High Achiever', lambda s: s.get('high_focus_sessions',0)>=1),
    Badge('ai_user', 'AI Explorer', lambda s: s.get('ai_sessions',0)>=1),
    Badge('resilient', 'Resilient', lambda s: s.get('fs_exit_count',0)>=1),
]

def evaluate_badges(student:Dict)->List[str]:
    """Append every newly satisfied badge; never removes one. Returns the new ids."""
    earned=student.setdefault('badges', []) or []
    student['badges']=earned; new=[]
    for b in BADGES:
        if b.id not in earned and b.predicate(student): earned.append(b.id); new.append(b.id)
    return new

def score_view(student:Dict)->Dict:
    pts=student.get('points',0) or 0; xp=pts%LEVEL_XP; earned=student.get('badges') or []
    return {"username": student['username'], "points": pts, "quiz_correct": student.get('quiz_correct',0) or 0,
            "level": pts//LEVEL_XP+1, "xp": xp, "xp_fraction": xp/LEVEL_XP, "progress": min(1.0, pts/SCORE_CAP),
            "badges": [{"id": b.id, "label": b.label, "earned": b.id in earned} for b in BADGES]}

class ScoringEngine:
    def __init__(self, store:SessionStore):
        self.store=store

    def _bump(self, username:str, points:int=0, **counters)->Dict:
        with self.store.transaction('students', READWRITE) as students:
            stu=students.get(username)
            if stu is None: raise UserNotFoundError("User not found.")
            stu['points']=max(0, (stu.get('points') or 0)+points)
            for k,v in counters.items(): stu[k]=(stu.get(k) or 0)+v
            new=evaluate_badges(stu); students.put(stu)
        if new: logger.info("%s earned badges %s", username, new)
        return stu

    def on_focus_select(self, username:str, focus:str)->Dict:
        if focus not in FOCUS_PTS: raise ValidationError(f"Unknown focus level: {focus}")
        stu=self._bump(username, FOCUS_PTS[focus], sessions=1, high_focus_sessions=1 if focus=='High' else 0)
        self.store.update('sessions', username, focus=focus, points=stu['points'], last_seen=time.time()*1000)
        self.store.log_event('focus', username, f"{username} set focus: {focus}", FOCUS_COLOR[focus])
        return stu

    def on_quiz_correct_answer(self, username:str)->Dict:
        stu=self._bump(username, QUIZ_BONUS, quiz_correct=1)
        self.store.log_event('quiz_correct', username, f"{username} answered a quiz question correctly", '#00ff88')
        return stu

    def on_ai_activate(self, username:str)->Dict:
        stu=self._bump(username, ai_sessions=1)
        self.store.update('sessions', username, ai_used=True, last_seen=time.time()*1000)
        return stu

    def on_fs_exit(self, username:str)->Dict:
        return self._bump(username, fs_exit_count=1)

    def score(self, username:str)->Dict:
        stu=self.store.get('students', username)
        if stu is None: raise UserNotFoundError("User not found.")
        return score_view(stu)
