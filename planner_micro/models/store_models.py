from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB

from planner_micro.config import config
from planner_micro.db.database import Base


class KeyValueRecord(Base):
    """One document in the hosted key-value store (key -> JSON value)"""

    __tablename__ = config.STORE_TABLE_NAME

    key = Column(String(255), primary_key=True, index=True)
    value = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
