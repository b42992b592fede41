"""Persistence gateway: the single place where components touch the ORM.

A ``Gateway`` is built once by the app factory around the Flask-SQLAlchemy
session and handed to the pricing, availability and loyalty components.
"""
from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from flask import current_app
from sqlalchemy import inspect

from .extensions import db
from .models import (AnalyticsEvent, Booking, Customer, CustomerLoyalty,
                     Feedback, LoyaltyProgram, LoyaltyTransaction, Service,
                     ServiceCategory, ServiceVariant, Staff, User)


class Repository:
    """CRUD primitives for one model class."""

    def __init__(self, model, session) -> None:
        self.model = model
        self.session = session
        self._pk = inspect(model).primary_key[0]

    # -- filters ---------------------------------------------------------
    def _criteria(self, criteria: Iterable[Any], equals: dict[str, Any]) -> list[Any]:
        clauses = list(criteria)
        for field, value in equals.items():
            column = getattr(self.model, field)
            if isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(column.in_(list(value)))
            elif value is None:
                clauses.append(column.is_(None))
            else:
                clauses.append(column == value)
        return clauses

    def query(self, *criteria, **equals):
        return self.session.query(self.model).filter(*self._criteria(criteria, equals))

    # -- reads -----------------------------------------------------------
    def find_unique(self, id: Any = None, **keys):
        if id is not None:
            return self.session.get(self.model, id)
        return self.query(**keys).one_or_none()

    def find_first(self, *criteria, order_by=None, **equals):
        query = self.query(*criteria, **equals)
        if order_by is not None:
            query = query.order_by(*_as_list(order_by))
        return query.first()

    def find_many(self, *criteria, order_by=None, page: int | None = None,
                  limit: int | None = None, options=None, **equals) -> list:
        query = self.query(*criteria, **equals)
        if options:
            query = query.options(*_as_list(options))
        if order_by is not None:
            query = query.order_by(*_as_list(order_by))
        if limit is not None:
            query = query.limit(limit)
            if page is not None:
                query = query.offset((max(page, 1) - 1) * limit)
        return query.all()

    def count(self, *criteria, **equals) -> int:
        return self.query(*criteria, **equals).count()

    # -- writes ----------------------------------------------------------
    def create(self, flush: bool = True, **data):
        instance = self.model(**data)
        self.session.add(instance)
        if flush:
            self.session.flush()
        return instance

    def update(self, instance_or_id, **data):
        instance = self._resolve(instance_or_id)
        if instance is None:
            return None
        for field, value in data.items():
            setattr(instance, field, value)
        self.session.flush()
        return instance

    def delete(self, instance_or_id) -> bool:
        instance = self._resolve(instance_or_id)
        if instance is None:
            return False
        self.session.delete(instance)
        self.session.flush()
        return True

    def increment(self, id: Any, **deltas: int) -> bool:
        """Issue ``UPDATE ... SET col = col + n`` for every delta."""
        values = {getattr(self.model, field): getattr(self.model, field) + amount
                  for field, amount in deltas.items()}
        changed = self.query(self._pk == id).update(values, synchronize_session="fetch")
        return changed > 0

    def decrement(self, id: Any, guard=None, **deltas: int) -> bool:
        """Conditional ``UPDATE ... SET col = col - n WHERE guard``.

        Returns False when no row matched, e.g. when the guard rejected it.
        """
        values = {getattr(self.model, field): getattr(self.model, field) - amount
                  for field, amount in deltas.items()}
        criteria = [self._pk == id]
        if guard is not None:
            criteria.append(guard)
        changed = self.query(*criteria).update(values, synchronize_session="fetch")
        return changed > 0

    # -- helpers ---------------------------------------------------------
    def _resolve(self, instance_or_id):
        if isinstance(instance_or_id, self.model):
            return instance_or_id
        return self.session.get(self.model, instance_or_id)


def _as_list(value) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class Gateway:
    """One repository per entity plus transaction control."""

    def __init__(self, session) -> None:
        self.session = session
        self.users = Repository(User, session)
        self.staff = Repository(Staff, session)
        self.customers = Repository(Customer, session)
        self.categories = Repository(ServiceCategory, session)
        self.services = Repository(Service, session)
        self.variants = Repository(ServiceVariant, session)
        self.bookings = Repository(Booking, session)
        self.feedback = Repository(Feedback, session)
        self.analytics = Repository(AnalyticsEvent, session)
        self.programs = Repository(LoyaltyProgram, session)
        self.loyalty = Repository(CustomerLoyalty, session)
        self.loyalty_transactions = Repository(LoyaltyTransaction, session)

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


def init_gateway(app) -> Gateway:
    gateway = Gateway(db.session)
    app.extensions["gateway"] = gateway
    return gateway


def get_gateway() -> Gateway:
    return current_app.extensions["gateway"]
