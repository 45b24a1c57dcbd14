"""
Operational records: settings, audit log and rider notifications.
"""

from sqlalchemy import Column, String, Boolean, DateTime, JSON, Text
from ridehail.core.database import Base, utcnow
from ridehail.models.user import new_id

WEATHER_SETTING = "weather"

class SystemSetting(Base):
    __tablename__ = "system_settings"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

class SystemLog(Base):
    __tablename__ = "system_logs"

    id = Column(String, primary_key=True, default=new_id)
    action = Column(String, index=True, nullable=False)
    actor = Column(String, nullable=True)
    target = Column(String, nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, index=True, nullable=False)
    ride_id = Column(String, nullable=True)
    title = Column(String, nullable=False)
    body = Column(Text, nullable=True)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
