import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from .config import section

Base=declarative_base()

def make_engine(url:str):
    if url.startswith('sqlite'):
        kw={"connect_args":{"check_same_thread":False}}
        if url in ('sqlite://','sqlite:///:memory:'): kw["poolclass"]=StaticPool
        return create_engine(url, **kw)
    return create_engine(url, pool_pre_ping=True)

DATABASE_URL=os.getenv('NEURALEDU_DATABASE_URL') or section('database').get('url','sqlite:///./neuraledu.db')
engine=make_engine(DATABASE_URL)
SessionLocal=sessionmaker(bind=engine, autocommit=False, autoflush=False)
