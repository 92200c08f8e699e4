"""Overlapping transactions racing for stock and promotion uses.

Each worker runs in its own thread with its own session on a file-backed
SQLite database. SQLite has no row locks, so every transaction starts with
BEGIN IMMEDIATE and writers queue on the database lock instead.
"""
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import create_engine, event

from checkout.data.database import Base
from checkout.domain.errors import Rejection, Reason
from checkout.services.order_service import OrderService


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'checkout.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _autocommit_driver(dbapi_connection, connection_record):
        #let SQLAlchemy emit BEGIN itself
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def race(session_factory, notifier, cart_cache):
    """Run every job at once, each with its own OrderService, and collect the results."""

    def _race(jobs):
        barrier = threading.Barrier(len(jobs))

        def worker(job):
            session = session_factory()
            try:
                orders = OrderService(session, notification_service=notifier, cart_cache=cart_cache)
                barrier.wait()
                return job(orders)
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=len(jobs)) as pool:
            return list(pool.map(worker, jobs))

    return _race


def _successes(results):
    return [r for r in results if isinstance(r, dict)]


def _reasons(results):
    return [r.reason for r in results if isinstance(r, Rejection)]


def test_two_users_race_for_the_last_units(race, catalog, stock_of):
    """Stock 5, two users order 3 at the same time: one wins, stock ends at 2."""
    results = race(
        [
            lambda orders: orders.buy_now(1, catalog.shirt_v, 3, catalog.alice_addr, "COD"),
            lambda orders: orders.buy_now(2, catalog.shirt_v, 3, catalog.bob_addr, "COD"),
        ]
    )

    assert len(_successes(results)) == 1
    assert _reasons(results) == [Reason.INSUFFICIENT_STOCK]
    assert stock_of(catalog.shirt_v) == 2


def test_many_buyers_never_oversell(race, catalog, stock_of):
    jobs = [
        lambda orders: orders.buy_now(1, catalog.shirt_v, 1, catalog.alice_addr, "COD")
        for _ in range(8)
    ]

    results = race(jobs)

    assert len(_successes(results)) == 5
    assert _reasons(results) == [Reason.INSUFFICIENT_STOCK] * 3
    assert stock_of(catalog.shirt_v) == 0


def test_concurrent_redemptions_stop_at_max_uses(db, race, catalog, stock_of):
    """SAVE10 with three uses left, six orders at once: exactly three get it."""
    catalog.save10.max_uses = 3
    db.commit()
    jobs = [
        lambda orders: orders.buy_now(1, catalog.jeans_v, 1, catalog.alice_addr, "COD", promotion_code="SAVE10")
        for _ in range(6)
    ]

    results = race(jobs)

    assert len(_successes(results)) == 3
    assert _reasons(results) == [Reason.MAX_USES_REACHED] * 3
    #rejected orders gave their reservation back
    assert stock_of(catalog.jeans_v) == 7
    db.refresh(catalog.save10)
    assert catalog.save10.used_count == 3


def test_cancels_and_orders_interleave(session_factory, race, catalog, stock_of, notifier, cart_cache):
    """Releases and reservations on one variant keep stock consistent and non-negative."""
    setup = session_factory()
    try:
        orders = OrderService(setup, notification_service=notifier, cart_cache=cart_cache)
        placed = [orders.buy_now(1, catalog.shirt_v, 1, catalog.alice_addr, "COD")["id"] for _ in range(3)]
    finally:
        setup.close()

    cancels = [lambda orders, order_id=order_id: orders.cancel_order(order_id, 1) for order_id in placed]
    buys = [lambda orders: orders.buy_now(2, catalog.shirt_v, 1, catalog.bob_addr, "COD") for _ in range(4)]

    results = race(cancels + buys)

    assert all(r["status"] == "cancelled" for r in results[:3])
    bought = len(_successes(results[3:]))
    assert _reasons(results[3:]) == [Reason.INSUFFICIENT_STOCK] * (4 - bought)
    assert 2 <= bought <= 4
    assert stock_of(catalog.shirt_v) == 5 - bought
