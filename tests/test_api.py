"""
Tests for the HTTP and WebSocket surface
"""
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

import neuraledu.main as main


@pytest.fixture
def client(classroom, monkeypatch):
    monkeypatch.setattr(main, 'classroom', classroom)
    with TestClient(main.app) as c:
        yield c


def register(client, username='bob', password='pass1'):
    res = client.post('/api/auth/register', json={"username": username, "password": password})
    assert res.status_code == 200
    return res.json()['token']


def teacher(client):
    res = client.post('/api/auth/teacher', json={"username": "teacher1", "password": "123456"})
    assert res.status_code == 200
    return res.json()['token']


class TestAuthRoutes:
    def test_root(self, client):
        assert client.get('/').json() == {"ok": True}

    def test_register_and_login(self, client):
        res = client.post('/api/auth/register', json={"username": "bob", "password": "pass1"})
        assert res.json()['role'] == 'student'

        res = client.post('/api/auth/login', json={"username": "bob", "password": "pass1"})
        assert res.status_code == 200
        assert res.json()['username'] == 'bob'

    def test_username_taken(self, client):
        register(client)
        res = client.post('/api/auth/register', json={"username": "bob", "password": "other"})

        assert res.status_code == 409
        assert res.json()['error'] == 'username_taken'

    def test_incorrect_password(self, client):
        register(client)
        res = client.post('/api/auth/login', json={"username": "bob", "password": "nope"})

        assert res.status_code == 401
        assert res.json() == {"error": "incorrect_password", "message": "Incorrect password."}

    def test_weak_password(self, client):
        res = client.post('/api/auth/register', json={"username": "bob", "password": "abc"})

        assert res.status_code == 400
        assert res.json()['error'] == 'weak_password'

    def test_missing_token(self, client):
        res = client.get('/api/score')

        assert res.status_code == 404
        assert res.json()['error'] == 'unknown_session'

    def test_logout(self, client, classroom):
        tok = register(client)
        client.post('/api/auth/logout', headers={"x-session": tok})

        assert tok not in classroom.live
        assert client.get('/api/score', headers={"x-session": tok}).status_code == 404


class TestStudentRoutes:
    def test_begin_and_focus(self, client):
        tok = register(client)
        hdr = {"x-session": tok}

        assert client.post('/api/fullscreen/begin', json={"granted": True}, headers=hdr).json()['blocked'] is False
        res = client.post('/api/focus', json={"level": "Medium"}, headers=hdr)

        assert res.json()['points'] == 50
        assert client.get('/api/score', params={"token": tok}).json()['points'] == 50

    def test_fullscreen_exit_reports_countdown(self, client):
        tok = register(client)
        hdr = {"x-session": tok}
        client.post('/api/fullscreen/begin', json={"granted": True}, headers=hdr)

        view = client.post('/api/fullscreen', json={"in_fullscreen": False}, headers=hdr).json()

        assert view['state'] == 'exited'
        assert view['countdown']['duration'] == 20

    def test_ai_locked(self, client):
        tok = register(client)

        res = client.post('/api/ai/activate', headers={"x-session": tok})

        assert res.status_code == 400
        assert client.get('/api/ai/countdown', headers={"x-session": tok}).json()['label'] == '2:00'

    def test_begin_during_grace_period_cancels_countdown(self, client, classroom):
        tok = register(client)
        hdr = {"x-session": tok}
        client.post('/api/fullscreen/begin', json={"granted": True}, headers=hdr)
        client.post('/api/fullscreen', json={"in_fullscreen": False}, headers=hdr)

        view = client.post('/api/fullscreen/begin', json={"granted": True}, headers=hdr).json()

        assert view == {"state": "enforced", "blocked": False, "countdown": None}
        classroom.session(tok).ctx.timers.advance(20)
        assert tok in classroom.live

    def test_non_numeric_quiz_index(self, client):
        tok = register(client)

        res = client.post('/api/quiz/answer', json={"index": "first", "option": "x"}, headers={"x-session": tok})

        assert res.status_code == 400
        assert res.json()['error'] == 'validation'

    def test_student_forbidden_from_dashboard(self, client):
        tok = register(client)
        res = client.get('/api/dashboard', headers={"x-session": tok})

        assert res.status_code == 403
        assert res.json()['error'] == 'forbidden'


class TestTeacherRoutes:
    def test_upload_and_documents(self, client):
        ttok = teacher(client)
        stok = register(client)

        res = client.post('/api/media/document', json={"name": "notes.txt", "payload": "hello class"}, headers={"x-session": ttok})
        assert res.status_code == 200

        docs = client.get('/api/documents', headers={"x-session": stok}).json()
        assert docs['document'] == {"name": "notes.txt", "content": "hello class"}

    def test_upload_rejected(self, client):
        ttok = teacher(client)
        res = client.post('/api/media/document', json={"name": "notes.txt", "payload": "x" * 6000}, headers={"x-session": ttok})

        assert res.status_code == 400
        assert res.json()['error'] == 'upload_rejected'

    def test_declared_size_cannot_hide_oversize_document(self, client, classroom):
        ttok = teacher(client)
        res = client.post('/api/media/document', json={"name": "big.txt", "payload": "x" * 6000, "size": 10}, headers={"x-session": ttok})

        assert res.status_code == 400
        assert res.json()['error'] == 'upload_rejected'
        assert classroom.store.get_all('media') == []

    def test_string_size_is_validated(self, client):
        ttok = teacher(client)
        res = client.post('/api/media/document', json={"name": "notes.txt", "payload": "hello", "size": "lots"}, headers={"x-session": ttok})

        assert res.status_code == 400
        assert res.json()['error'] == 'upload_rejected'

    def test_dashboard(self, client):
        ttok = teacher(client)
        register(client)

        view = client.get('/api/dashboard', headers={"x-session": ttok}).json()

        assert view['students'] == 1
        assert view['trend']['insufficient'] is True

    def test_csv_report(self, client):
        ttok = teacher(client)
        register(client)

        res = client.get('/api/report/events.csv', headers={"x-session": ttok})

        assert res.status_code == 200
        assert res.headers['content-type'].startswith('text/csv')
        lines = res.text.strip().splitlines()
        assert lines[0] == 'id,ts,time,type,username,message'
        assert 'session_start' in lines[1]

    def test_pdf_report(self, client):
        ttok = teacher(client)
        register(client)

        res = client.get('/api/report/events.pdf', headers={"x-session": ttok})

        assert res.status_code == 200
        assert res.content.startswith(b'%PDF')

    def test_report_requires_teacher(self, client):
        tok = register(client)
        assert client.get('/api/report/events.csv', headers={"x-session": tok}).status_code == 403


class TestSessionSocket:
    def test_unknown_token_rejected(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect('/api/session/missing/events') as ws:
                ws.receive_text()

    def test_focus_over_socket(self, client):
        tok = register(client)

        with client.websocket_connect(f'/api/session/{tok}/events') as ws:
            ws.send_json({"t": "focus", "level": "High"})
            msg = ws.receive_json()

        assert msg['code'] == 'score'
        assert msg['points'] == 100

    def test_errors_become_warnings(self, client):
        tok = register(client)

        with client.websocket_connect(f'/api/session/{tok}/events') as ws:
            ws.send_json({"t": "focus", "level": "Extreme"})
            msg = ws.receive_json()

        assert msg == {"level": "warn", "code": "validation", "message": "Unknown focus level: Extreme"}

    def test_hello_during_grace_period_restores(self, client, classroom):
        tok = register(client)
        hdr = {"x-session": tok}
        client.post('/api/fullscreen/begin', json={"granted": True}, headers=hdr)
        client.post('/api/fullscreen', json={"in_fullscreen": False}, headers=hdr)

        with client.websocket_connect(f'/api/session/{tok}/events') as ws:
            ws.send_json({"t": "hello", "fullscreen": True})
            msg = ws.receive_json()

        assert msg['code'] == 'fullscreen'
        assert msg['state'] == 'enforced'
        assert not classroom.session(tok).ctx.timers.active('fs_countdown')

    def test_confirmed_exit_closes_socket(self, client, classroom, store):
        tok = register(client)

        with client.websocket_connect(f'/api/session/{tok}/events') as ws:
            ws.send_json({"t": "exit"})
            with pytest.raises(WebSocketDisconnect):
                while True:
                    ws.receive_json()

        assert tok not in classroom.live
        assert store.get_all('events')[-1]['type'] == 'session_end'
