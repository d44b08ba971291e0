import copy, logging, time
from contextlib import contextmanager
from typing import Any, Dict, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from .db import Base, SessionLocal
from .errors import StorageError
from . import models

logger=logging.getLogger(__name__)

COLLECTIONS={
    'students': (models.Student, 'username'),
    'sessions': (models.Session, 'username'),
    'events': (models.Event, 'id'),
    'media': (models.Media, 'id'),
    'settings': (models.Setting, 'name'),
    'recordings': (models.Recording, 'id'),
}
READONLY='readonly'; READWRITE='readwrite'

def _to_dict(row)->Dict[str,Any]:
    return {c.name: copy.deepcopy(getattr(row, c.name)) for c in row.__table__.columns}

class Collection:
    def __init__(self, db, name:str, mode:str):
        if name not in COLLECTIONS: raise StorageError(f"unknown collection {name}")
        self.db=db; self.name=name; self.mode=mode; self.model, self.key=COLLECTIONS[name]
    def _writable(self):
        if self.mode!=READWRITE: raise StorageError(f"{self.name}: write in readonly transaction")
    def _fields(self, record:Dict[str,Any])->Dict[str,Any]:
        cols={c.name for c in self.model.__table__.columns}
        return {k:copy.deepcopy(v) for k,v in record.items() if k in cols}
    def get(self, key)->Optional[Dict[str,Any]]:
        row=self.db.get(self.model, key)
        return _to_dict(row) if row is not None else None
    def get_all(self)->List[Dict[str,Any]]:
        pk=getattr(self.model, self.key)
        return [_to_dict(r) for r in self.db.query(self.model).order_by(pk.asc()).all()]
    def put(self, record:Dict[str,Any]):
        self._writable()
        if record.get(self.key) is None: raise StorageError(f"{self.name}: put without key '{self.key}'")
        self.db.merge(self.model(**self._fields(record)))
    def add(self, record:Dict[str,Any]):
        self._writable()
        fields=self._fields(record); fields.pop(self.key, None)
        row=self.model(**fields); self.db.add(row); self.db.flush()
        return getattr(row, self.key)
    def delete(self, key):
        self._writable()
        row=self.db.get(self.model, key)
        if row is not None: self.db.delete(row)

# Whole records are read, changed and written back: last write wins per record, one writer per record.
class SessionStore:
    def __init__(self, session_factory=None):
        self.session_factory=session_factory or SessionLocal
    def create_all(self):
        bind=self.session_factory.kw.get('bind')
        Base.metadata.create_all(bind=bind)

    @contextmanager
    def transaction(self, name:str, mode:str=READONLY):
        db=self.session_factory()
        try:
            yield Collection(db, name, mode)
            if mode==READWRITE: db.commit()
        except SQLAlchemyError as e:
            db.rollback(); raise StorageError(f"{name}: {e}") from e
        except Exception:
            db.rollback(); raise
        finally:
            db.close()

    def get(self, name:str, key):
        with self.transaction(name) as c: return c.get(key)
    def get_all(self, name:str):
        with self.transaction(name) as c: return c.get_all()
    def put(self, name:str, record:Dict[str,Any]):
        with self.transaction(name, READWRITE) as c: c.put(record)
    def add(self, name:str, record:Dict[str,Any]):
        with self.transaction(name, READWRITE) as c: return c.add(record)
    def delete(self, name:str, key):
        with self.transaction(name, READWRITE) as c: c.delete(key)

    def update(self, name:str, key, **changes):
        """Read-modify-write one record; returns the new record or None when absent."""
        with self.transaction(name, READWRITE) as c:
            rec=c.get(key)
            if rec is None: return None
            rec.update(changes); c.put(rec); return rec

    def setting(self, name:str, default=None):
        rec=self.get('settings', name)
        return rec['value'] if rec else default
    def set_setting(self, name:str, value):
        self.put('settings', {'name': name, 'value': value})

    def log_event(self, etype:str, username:Optional[str], message:str, color:Optional[str]=None):
        """Best effort: a failed event write is logged and swallowed."""
        try:
            return self.add('events', {'type': etype, 'username': username, 'message': message, 'color': color or '#6b8caa', 'ts': time.time()*1000})
        except StorageError as e:
            logger.warning("event %s for %s not recorded: %s", etype, username, e)
            return None
