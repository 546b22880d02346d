"""Pytest fixtures configuring an isolated transactional database layer.

Each test runs inside a SAVEPOINT-backed transaction against an in-memory
SQLite database so data changes never leak between cases. Units of Work
inside the code under test commit to the SAVEPOINT only.
"""

from __future__ import annotations

import os

import pytest
from sqlalchemy import event
from sqlalchemy.orm import scoped_session, sessionmaker

from tokenlife.core.config import TestingConfig
from tokenlife.core.extensions import db as _db  # Flask-SQLAlchemy instance
from tokenlife.factory import create_app  # application factory under test


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestingConfig` applied and logging
        noise reduced.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    os.environ.pop("REDIS_URL", None)
    app = create_app(TestingConfig)
    app.logger.setLevel("WARNING")
    return app


@pytest.fixture(scope="session")
def db(app):
    """Create database tables once per test session.

    pysqlite does not emit ``BEGIN`` by itself, which breaks SAVEPOINT
    nesting; the two listeners below hand transaction control to SQLAlchemy.

    Yields
    ------
    flask_sqlalchemy.SQLAlchemy
        Database extension bound to the testing application.
    """
    with app.app_context():
        engine = _db.engine
        if engine.url.get_backend_name() == "sqlite":

            @event.listens_for(engine, "connect")
            def _sqlite_autocommit(dbapi_connection, _record):  # pragma: no cover
                dbapi_connection.isolation_level = None

            @event.listens_for(engine, "begin")
            def _sqlite_begin(conn):  # pragma: no cover
                conn.exec_driver_sql("BEGIN")

        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="session")
def connection(db):
    """Keep a dedicated DBAPI connection open for the whole session."""
    conn = db.engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def session(db, connection):
    """Provide a SQLAlchemy session joined to an outer, always-rolled-back transaction.

    Yields
    ------
    sqlalchemy.orm.scoping.scoped_session
        Scoped session bound to the shared connection. ``commit()`` releases
        a SAVEPOINT; the outer transaction is rolled back after each test.
    """
    top_trans = connection.begin()

    SessionFactory = sessionmaker(
        bind=connection, join_transaction_mode="create_savepoint", autoflush=False
    )
    scoped = scoped_session(SessionFactory)

    # Monkey-patch db.session so app code uses this scoped session
    original_session = db.session
    db.session.remove()
    db.session = scoped

    try:
        yield scoped
    finally:
        scoped.remove()
        db.session = original_session
        top_trans.rollback()


@pytest.fixture()
def client(app, session):
    """Return a Flask test client sharing the transactional session."""
    return app.test_client()


@pytest.fixture()
def runner(app, session):
    """Return a Flask CLI runner sharing the transactional session."""
    return app.test_cli_runner()


@pytest.fixture()
def token_service(app):
    """The application's token lifecycle coordinator."""
    return app.extensions["token_lifecycle"]


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


# -- Hook up Factory Boy to pytest SQLAlchemy session --------------------------
@pytest.fixture(autouse=True)
def _factories_session(request):
    """Wire Factory Boy's session helper to the transactional session fixture.

    Pure unit tests that never request ``session`` stay database-free.
    """
    from tests.factories import SQLAlchemySession

    if "session" in request.fixturenames:
        SQLAlchemySession.set(request.getfixturevalue("session"))
    yield
    SQLAlchemySession.set(None)
