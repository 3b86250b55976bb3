# core/database_models.py
"""
Database models for the waitlist

One table: subscribers, unique by email, with the insert time set by the
database.
"""

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import Column, Integer, String, DateTime, func

db = SQLAlchemy()


class Subscriber(db.Model):
    __tablename__ = 'subscribers'

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(320), unique=True, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    def __repr__(self):
        return f"<Subscriber {self.id} {self.email}>"
