"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every writing service in the kernel layer.  Services receive a
    SQLAlchemy ``Session`` and use ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's
    transaction and never commit or rollback themselves.  The caller
    (``sales_services.ProposalService`` or a test harness) owns
    commit/rollback, which is what makes a line replacement, a status
    change and a history append one atomic unit.

Failure modes:
    - If a subclass calls ``session.commit()``, a failure later in the
      same save could leave lines and status out of step.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from sales_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Does NOT provide query-only (read) methods -- those belong
          in ``sales_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
