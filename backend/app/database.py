from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from fastapi import Request
import logging

logger = logging.getLogger(__name__)

Base = declarative_base()


class Database:
    """
    Owns the SQLAlchemy engine for the lifetime of the process.
    Construct once, call connect() at startup and disconnect() at shutdown.
    """

    def __init__(self, url: str):
        self.url = url
        self.engine = None
        self.SessionLocal = None

    def connect(self):
        if self.engine is not None:
            return
        # If using sqlite file, ensure check_same_thread option
        connect_args = {"check_same_thread": False} if self.url.startswith('sqlite') else {}
        # pool_pre_ping for reliability with some DB providers
        self.engine = create_engine(self.url, connect_args=connect_args, pool_pre_ping=True)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        # import models so their tables are registered on Base
        from . import models, donation_models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)
        logger.info('Database connected')

    def disconnect(self):
        if self.engine is None:
            return
        self.engine.dispose()
        self.engine = None
        self.SessionLocal = None
        logger.info('Database disconnected')

    def session(self):
        if self.SessionLocal is None:
            raise RuntimeError('Database is not connected')
        return self.SessionLocal()


def get_database(request: Request) -> Database:
    return request.app.state.db
