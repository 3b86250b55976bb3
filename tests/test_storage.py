"""
Tests for table bootstrap and subscriber inserts
"""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from app import create_app
from core.database_models import db, Subscriber
from core.errors import DuplicateError, StorageError
from core.storage import add_subscriber, count_subscribers, init_storage


def test_init_storage_is_idempotent(app):
    add_subscriber('keep@example.com')

    assert init_storage(app) is True
    assert init_storage(app) is True
    assert count_subscribers() == 1
    assert app.config['STORAGE_READY'] is True


def test_add_subscriber_assigns_id_and_timestamp(app):
    first = add_subscriber('one@example.com')
    second = add_subscriber('two@example.com')

    assert second.id > first.id
    assert first.created_at is not None
    assert db.session.get(Subscriber, first.id).email == 'one@example.com'


def test_add_subscriber_rejects_duplicates(app):
    add_subscriber('dup@example.com')

    with pytest.raises(DuplicateError):
        add_subscriber('dup@example.com')
    assert count_subscribers() == 1


def test_add_subscriber_wraps_other_failures(app):
    db.session.execute(text('DROP TABLE subscribers'))
    db.session.commit()

    with pytest.raises(StorageError, match='no such table'):
        add_subscriber('a@b.com')


def unreachable_database(tmp_path):
    return f"sqlite:///{tmp_path / 'missing' / 'nested' / 'mailing_list.db'}"


def test_store_open_failure_is_fatal_by_default(tmp_path):
    with pytest.raises(SQLAlchemyError):
        create_app('testing', {'DATABASE_URL': unreachable_database(tmp_path),
                               'STATIC_ROOT': str(tmp_path)})


def test_store_open_failure_can_degrade(tmp_path, caplog):
    app = create_app('testing', {
        'DATABASE_URL': unreachable_database(tmp_path),
        'STATIC_ROOT': str(tmp_path),
        'STORAGE_REQUIRED': False,
    })
    client = app.test_client()

    assert app.config['STORAGE_READY'] is False
    assert 'Failed to open subscriber store' in caplog.text

    response = client.post('/api/subscribe', json={'email': 'a@b.com'})
    assert response.status_code == 500
    assert 'unable to open database file' in response.get_json()['error']

    health = client.get('/health')
    assert health.status_code == 503
    assert health.get_json()['status'] == 'unhealthy'


def test_malformed_database_url_is_always_fatal(tmp_path, caplog):
    with pytest.raises(ArgumentError):
        create_app('testing', {
            'DATABASE_URL': 'not-a-url',
            'STATIC_ROOT': str(tmp_path),
            'STORAGE_REQUIRED': False,
        })
    assert 'Invalid DATABASE_URL' in caplog.text
