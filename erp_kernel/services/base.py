"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for every service in
    the kernel layer.  Kernel services use ``session.flush()`` -- never
    ``session.commit()``.

Invariants enforced:
    Transaction boundaries: kernel services flush within the caller's
    transaction and never commit or roll back themselves.  The workflow
    module (or test harness) owns commit/rollback, which is what makes a
    status write and its stock movements one atomic unit.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from erp_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only helpers -- those belong in
          ``erp_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
