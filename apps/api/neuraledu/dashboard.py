import time
from typing import Dict, List, Optional
from .config import section
from .media import MediaLibrary
from .scoring import FOCUS_PTS
from .store import SessionStore

LEVELS=("High", "Medium", "Low")
INSUFFICIENT_TREND="Need 2+ sessions to render trend"

def focus_histogram(sessions:List[Dict])->Dict[str,int]:
    dist={k:0 for k in LEVELS}
    for s in sessions:
        if s.get('focus') in dist: dist[s['focus']]+=1
    return dist

def average_points(sessions:List[Dict])->Optional[int]:
    scored=[s['points'] for s in sessions if (s.get('points') or 0)>0]
    return round(sum(scored)/len(scored)) if scored else None

def compliance(sessions:List[Dict])->Dict:
    total=len(sessions); inside=sum(1 for s in sessions if s.get('fs_in_fullscreen'))
    return {"in_fullscreen": inside, "total": total, "ratio": inside/total if total else None}

def trend(sessions:List[Dict])->Dict:
    scored=[s for s in sessions if s.get('focus')]
    if len(scored)<2: return {"insufficient": True, "message": INSUFFICIENT_TREND, "points": [], "labels": [], "focus": []}
    return {"insufficient": False, "message": "", "points": [FOCUS_PTS.get(s['focus'],0) for s in scored],
            "labels": [s.get('last_seen') or s.get('start_time') for s in scored], "focus": [s['focus'] for s in scored]}

def recent(events:List[Dict], limit:int, etype:Optional[str]=None)->List[Dict]:
    picked=[e for e in events if etype is None or e.get('type')==etype]
    return sorted(picked, key=lambda e: (e.get('ts') or 0, e.get('id') or 0), reverse=True)[:limit]

def row(s:Dict)->Dict:
    return {"username": s['username'], "focus": s.get('focus'), "in_fullscreen": bool(s.get('fs_in_fullscreen')),
            "last_exit": s.get('last_exit'), "exit_count": s.get('fs_exit_count') or 0, "points": s.get('points') or 0}

class DashboardAggregator:
    def __init__(self, store:SessionStore, feed_limit:Optional[int]=None, exit_feed_limit:Optional[int]=None):
        cfg=section('dashboard'); self.store=store
        self.feed_limit=feed_limit or int(cfg.get('feed_limit', 40)); self.exit_feed_limit=exit_feed_limit or int(cfg.get('exit_feed_limit', 20))

    def cameras(self, sessions:List[Dict])->List[str]:
        out=[]
        for s in sessions:
            state=self.store.setting(f"cam_{s['username']}", {"active": False}) or {}
            if state.get('active'): out.append(s['username'])
        return out

    def build(self, now:Optional[float]=None)->Dict:
        now=now or time.time()*1000
        sessions=self.store.get_all('sessions'); events=self.store.get_all('events')
        total=len(sessions); low=sum(1 for s in sessions if s.get('focus')=='Low')
        analytics=[{**row(s), "duration_s": int(max(0, now-(s.get('start_time') or s.get('last_seen') or now))//1000), "ai_used": bool(s.get('ai_used'))}
                   for s in reversed(sessions)]
        media=MediaLibrary(self.store).library()
        return {
            "students": total,
            "focus_histogram": focus_histogram(sessions),
            "average_points": average_points(sessions),
            "compliance": compliance(sessions),
            "fs_exit_total": sum(1 for e in events if e.get('type')=='fs_exit'),
            "rows": [row(s) for s in sessions],
            "trend": trend(sessions),
            "feed": recent(events, self.feed_limit),
            "exit_feed": recent(events, self.exit_feed_limit, 'fs_exit'),
            "low_focus_pct": round(low/total*100) if total else 0,
            "analytics": analytics,
            "cameras": self.cameras(sessions),
            "recordings": list(reversed(self.store.get_all('recordings'))),
            "media": media,
            "webrtc": self.store.setting('webrtc', {"feeds": False, "recording": False}),
        }
