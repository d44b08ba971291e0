from sqlalchemy import Column, Integer, String, Float, JSON, Text, Boolean
from .db import Base
class Student(Base):
    __tablename__='students'
    username=Column(String, primary_key=True); password=Column(String, nullable=False)
    points=Column(Integer, default=0); badges=Column(JSON, default=list)
    sessions=Column(Integer, default=0); high_focus_sessions=Column(Integer, default=0); ai_sessions=Column(Integer, default=0)
    quiz_correct=Column(Integer, default=0); fs_exit_count=Column(Integer, default=0)
class Session(Base):
    __tablename__='sessions'
    username=Column(String, primary_key=True); focus=Column(String, nullable=True); points=Column(Integer, default=0)
    start_time=Column(Float, default=0.0); last_seen=Column(Float, default=0.0); ai_used=Column(Boolean, default=False)
    fs_in_fullscreen=Column(Boolean, default=False); fs_exit_count=Column(Integer, default=0); last_exit=Column(Float, nullable=True)
class Event(Base):
    __tablename__='events'
    id=Column(Integer, primary_key=True, autoincrement=True); type=Column(String, index=True); username=Column(String, index=True)
    message=Column(Text); color=Column(String); ts=Column(Float)
class Media(Base):
    __tablename__='media'
    id=Column(Integer, primary_key=True, autoincrement=True); kind=Column(String, index=True); name=Column(String)
    size=Column(Integer); payload=Column(Text); ts=Column(Float)
class Setting(Base):
    __tablename__='settings'
    name=Column(String, primary_key=True); value=Column(JSON)
class Recording(Base):
    __tablename__='recordings'
    id=Column(Integer, primary_key=True, autoincrement=True); label=Column(String); ts=Column(Float); kind=Column(String)
