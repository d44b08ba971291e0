import asyncio, json, logging, os
from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Request
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from .db import engine, Base
from .classroom import Classroom
from .errors import NeuralEduError, UnknownSessionError
from .reports import events_csv, events_pdf
from .store import SessionStore

DEBUG_ENDPOINTS = os.getenv('DEBUG_ENDPOINTS','false').lower()=='true'
logging.basicConfig(level=os.getenv('LOG_LEVEL','INFO').upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="NeuralEdu API")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True, allow_methods=["*"], allow_headers=["*"])

Base.metadata.create_all(bind=engine)
classroom = Classroom(SessionStore())

@app.exception_handler(NeuralEduError)
async def neuraledu_error(request: Request, exc: NeuralEduError):
    return JSONResponse({'error': exc.code, 'message': exc.message}, status_code=exc.status)

def _token(request: Request) -> str:
    tok = request.headers.get('x-session') or request.query_params.get('token')
    if not tok: raise UnknownSessionError("Missing session token.")
    return tok
def _ctx_out(ctx): return {"token": ctx.token, "username": ctx.username, "role": ctx.role}

@app.get("/")
def root(): return {"ok":True}

# Auth
@app.post("/api/auth/register")
async def register(payload: dict):
    return _ctx_out(classroom.register(payload.get("username",""), payload.get("password",""), begin=False))

@app.post("/api/auth/login")
async def login(payload: dict):
    return _ctx_out(classroom.login(payload.get("username",""), payload.get("password",""), begin=False))

@app.post("/api/auth/teacher")
async def teacher_login(payload: dict):
    return _ctx_out(classroom.teacher_login(payload.get("username",""), payload.get("password","")))

@app.post("/api/auth/logout")
async def logout(request: Request):
    classroom.logout(_token(request)); return {"ok": True}

# Student
@app.post("/api/fullscreen")
async def fullscreen(payload: dict, request: Request):
    return classroom.fullscreen_changed(_token(request), bool(payload.get("in_fullscreen")))

@app.post("/api/fullscreen/begin")
async def fullscreen_begin(payload: dict, request: Request):
    return classroom.begin(_token(request), bool(payload.get("granted")))

@app.post("/api/fullscreen/stay")
async def fullscreen_stay(payload: dict, request: Request):
    return {"restored": classroom.stay(_token(request), payload.get("granted"))}

@app.post("/api/fullscreen/exit")
async def fullscreen_exit(request: Request):
    classroom.confirm_exit(_token(request)); return {"ok": True}

@app.post("/api/focus")
async def focus(payload: dict, request: Request):
    return classroom.select_focus(_token(request), payload.get("level",""))

@app.get("/api/score")
async def score(request: Request): return classroom.score(_token(request))

@app.get("/api/documents")
async def documents(request: Request): return classroom.documents(_token(request))

@app.get("/api/ai/countdown")
async def ai_countdown(request: Request): return classroom.ai_countdown(_token(request))

@app.post("/api/ai/activate")
async def ai_activate(request: Request): return classroom.activate_ai(_token(request))

@app.post("/api/quiz/answer")
async def quiz_answer(payload: dict, request: Request):
    return classroom.answer_quiz(_token(request), payload.get("index", -1), payload.get("option",""))

@app.post("/api/camera")
async def camera(payload: dict, request: Request):
    return {"active": classroom.toggle_camera(_token(request), payload.get("granted"))}

# Teacher
@app.get("/api/dashboard")
async def dashboard(request: Request): return classroom.dashboard(_token(request))

@app.post("/api/media/{kind}")
async def upload(kind: str, payload: dict, request: Request):
    new_id = classroom.upload(_token(request), kind, payload.get("name",""), payload.get("payload",""), payload.get("size"), payload.get("content_type",""))
    return {"id": new_id}

@app.delete("/api/media/{media_id}")
async def delete_media(media_id: int, request: Request):
    classroom.delete_media(_token(request), media_id); return {"ok": True}

@app.post("/api/settings/webrtc")
async def webrtc(payload: dict, request: Request):
    return classroom.save_webrtc(_token(request), payload.get("feeds", False), payload.get("recording", False))

@app.post("/api/recordings/snapshot")
async def snapshot(request: Request):
    return {"id": classroom.snapshot(_token(request))}

@app.get("/api/report/events.csv")
async def report_csv(request: Request):
    classroom.dashboard(_token(request))
    body = events_csv(classroom.store.get_all('events'))
    return Response(content=body, media_type='text/csv', headers={'Content-Disposition': 'attachment; filename="events.csv"'})

@app.get("/api/report/events.pdf")
async def report_pdf(request: Request):
    classroom.dashboard(_token(request))
    body = events_pdf(classroom.store.get_all('events'))
    return Response(content=body, media_type='application/pdf', headers={'Content-Disposition': 'attachment; filename="events.pdf"'})

if DEBUG_ENDPOINTS:
    @app.get("/api/debug/live")
    def debug_live():
        return [{"username": l.ctx.username, "role": l.ctx.role, "timers": l.ctx.timers.names} for l in classroom.live.values()]

# WebSocket: platform signals in, notifications out
async def _handle(token: str, evt: dict):
    etype = evt.get("t")
    if etype == "hello": return {"code": "fullscreen", **classroom.begin(token, bool(evt.get("fullscreen")))}
    if etype == "fs": return {"code": "fullscreen", **classroom.fullscreen_changed(token, evt.get("state") == "enter")}
    if etype == "stay": return {"code": "stay", "restored": classroom.stay(token, evt.get("granted"))}
    if etype == "exit": classroom.confirm_exit(token); return None
    if etype == "focus": return {"code": "score", **classroom.select_focus(token, evt.get("level",""))}
    if etype == "ai": return {"code": "ai_content", **classroom.activate_ai(token)}
    if etype == "quiz": return {"code": "quiz", **classroom.answer_quiz(token, evt.get("q", -1), evt.get("option",""))}
    if etype == "cam": return {"code": "camera", "active": classroom.toggle_camera(token, evt.get("granted"))}
    return {"level": "warn", "code": "unknown_event", "t": etype}

@app.websocket("/api/session/{token}/events")
async def ws_events(ws: WebSocket, token: str):
    if token not in classroom.live: await ws.close(code=4403); return
    await ws.accept()
    outbox: asyncio.Queue = asyncio.Queue()
    unsubscribe = classroom.notifier.subscribe(token, lambda kind, data: outbox.put_nowait({"code": kind, **data}))
    async def pump():
        while True:
            msg = await outbox.get(); await ws.send_text(json.dumps(msg))
    sender = asyncio.create_task(pump())
    try:
        while True:
            evt = json.loads(await ws.receive_text())
            try:
                out = await _handle(token, evt)
            except NeuralEduError as e:
                out = {"level": "warn", "code": e.code, "message": e.message}
            if out is not None: outbox.put_nowait(out)
            if token not in classroom.live: break
    except WebSocketDisconnect: pass
    finally:
        unsubscribe(); sender.cancel()
        if token not in classroom.live:
            try:
                while not outbox.empty(): await ws.send_text(json.dumps(outbox.get_nowait()))
                await ws.close()
            except (WebSocketDisconnect, RuntimeError): pass
