import base64, binascii, logging, os, time
from typing import Dict, List, Optional
from .config import section
from .errors import UploadRejectedError
from .store import SessionStore, READWRITE

logger=logging.getLogger(__name__)
DOCUMENT='document'; VIDEO='video'
EXTENSIONS={DOCUMENT: 'txt', VIDEO: 'mp4'}

def limits()->Dict[str,int]:
    u=section('uploads')
    return {DOCUMENT: int(u.get('document_max_bytes', 5*1024)), VIDEO: int(u.get('video_max_bytes', 10*1024*1024))}

def _fmt_size(b:int)->str:
    if b<1024: return f"{b}B"
    if b<1048576: return f"{b/1024:.1f}KB"
    return f"{b/1048576:.1f}MB"

def payload_size(kind:str, payload:str)->int:
    """Bytes actually carried: decoded length for base64 video data URLs, UTF-8 length otherwise."""
    if kind==VIDEO and payload.startswith('data:') and ';base64,' in payload:
        try: return len(base64.b64decode(payload.split(';base64,', 1)[1], validate=True))
        except (binascii.Error, ValueError): raise UploadRejectedError("Video payload is not valid base64.")
    return len(payload.encode('utf-8'))

def declared_size(size)->Optional[int]:
    if size is None or size=='': return None
    try: size=int(size)
    except (TypeError, ValueError): raise UploadRejectedError(f"Invalid size: {size!r}")
    if size<0: raise UploadRejectedError(f"Invalid size: {size}")
    return size

class MediaLibrary:
    def __init__(self, store:SessionStore):
        self.store=store

    def validate(self, kind:str, name:str, size:int, content_type:str=""):
        if kind not in EXTENSIONS: raise UploadRejectedError(f"Unknown media kind: {kind}")
        ext=os.path.splitext(name or '')[1].lstrip('.').lower(); want=EXTENSIONS[kind]
        if ext!=want and not (kind==VIDEO and 'video' in (content_type or '')):
            raise UploadRejectedError(f"Select a .{want} file.")
        limit=limits()[kind]
        if size>limit: raise UploadRejectedError(f"Too large (max {_fmt_size(limit)}).")

    def upload(self, kind:str, name:str, payload:str, size:Optional[int]=None, content_type:str="", uploader:str="teacher")->int:
        if not isinstance(payload, str): raise UploadRejectedError("Upload payload must be text.")
        measured=payload_size(kind, payload); claimed=declared_size(size)
        self.validate(kind, name, max(measured, claimed or 0), content_type)
        size=measured
        with self.store.transaction('media', READWRITE) as media:
            for m in media.get_all():
                if m['kind']==kind: media.delete(m['id'])
            new_id=media.add({"kind": kind, "name": name, "size": size, "payload": payload, "ts": time.time()*1000})
        logger.info("stored %s %s (%s bytes) as media %s", kind, name, size, new_id)
        self.store.log_event('upload', uploader, f"Uploaded {kind}: {name}", '#00d4ff' if kind==DOCUMENT else '#7b2fff')
        return new_id

    def delete(self, media_id:int):
        self.store.delete('media', media_id)

    def latest(self, kind:str)->Optional[Dict]:
        items=[m for m in self.store.get_all('media') if m['kind']==kind]
        return items[-1] if items else None

    def library(self)->List[Dict]:
        return [{"id": m['id'], "kind": m['kind'], "name": m['name'], "size": m['size'], "size_label": _fmt_size(m['size'] or 0), "ts": m['ts']}
                for m in self.store.get_all('media')]

    def student_view(self)->Dict:
        doc=self.latest(DOCUMENT); vid=self.latest(VIDEO)
        return {"document": {"name": doc['name'], "content": doc['payload'] or "(Empty document)"} if doc else None,
                "video": {"name": vid['name'], "payload": vid['payload']} if vid else None}
