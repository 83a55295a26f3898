from sqlalchemy import Column, Integer, String, Float, DateTime
from .database import Base
import datetime


class Donation(Base):
    __tablename__ = 'donations'
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    amount = Column(Float, nullable=False)
    method = Column(String(50), nullable=False)  # stripe, chapa, telebirr, manual
    reference = Column(String(500), nullable=False)  # provider tx id, checkout url or local token
    created_at = Column(DateTime, default=datetime.datetime.utcnow, index=True)
