# core/storage.py
"""
Subscriber storage: table bootstrap and unique inserts
"""

import logging

from flask import Flask
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.database_models import db, Subscriber
from core.errors import DuplicateError, StorageError

logger = logging.getLogger(__name__)


def init_storage(app: Flask) -> bool:
    """
    Open the store and create the subscribers table if it is absent.

    Safe to run on every start. When the store cannot be opened the error is
    logged; it is re-raised unless STORAGE_REQUIRED is disabled, in which case
    the app keeps running with STORAGE_READY set to False. A DATABASE_URL that
    cannot be parsed never gets here; configure_database treats it as fatal.
    """
    database_url = app.config['SQLALCHEMY_DATABASE_URI']
    try:
        with app.app_context():
            db.create_all()
    except SQLAlchemyError as e:
        app.config['STORAGE_READY'] = False
        app.logger.error(f"Failed to open subscriber store {database_url}: {e}")
        if app.config.get('STORAGE_REQUIRED', True):
            raise
        return False

    app.config['STORAGE_READY'] = True
    app.logger.info(f"Connected to database: {database_url}")
    return True


def add_subscriber(email: str) -> Subscriber:
    """Insert a subscriber; the unique index on email rejects duplicates"""
    subscriber = Subscriber(email=email)
    db.session.add(subscriber)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if 'unique' in str(e.orig).lower():
            raise DuplicateError(f"{email} is already subscribed") from e
        raise StorageError(str(e.orig)) from e
    except SQLAlchemyError as e:
        db.session.rollback()
        message = str(getattr(e, 'orig', None) or e)
        logger.error(f"Subscriber insert failed: {message}")
        raise StorageError(message) from e
    return subscriber


def count_subscribers() -> int:
    return db.session.scalar(select(func.count()).select_from(Subscriber))
