from sqlalchemy import Column, Integer, String, DateTime
from .database import Base
import datetime


class User(Base):
    __tablename__ = 'users'
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=True)
    email = Column(String(200), nullable=False, unique=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
