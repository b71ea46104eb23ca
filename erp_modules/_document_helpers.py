"""
Shared helpers for document workflows.

Used by erp_modules/*/service.py to reduce duplication when locking a
document row, validating master data, and applying a workflow transition.

Architecture: Modules layer. Imports only from erp_kernel.
"""

from __future__ import annotations

from typing import Iterable, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.db.base import Base
from erp_kernel.domain.workflow import Transition, Workflow
from erp_kernel.exceptions import ConflictError, NotFoundError, ValidationError
from erp_kernel.logging_config import get_logger
from erp_kernel.models.catalog import Product, Warehouse

logger = get_logger("modules.document_helpers")

DocumentT = TypeVar("DocumentT", bound=Base)


def lock_document(
    session: Session,
    model: type[DocumentT],
    document_id: UUID,
    entity_type: str,
) -> DocumentT:
    """
    Load a document row ``FOR UPDATE``.

    Two concurrent transitions of the same document serialize here, so the
    second one sees the first one's status.

    Raises:
        NotFoundError: no such document.
    """
    document = session.execute(
        select(model)
        .where(model.id == document_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if document is None:
        raise NotFoundError(entity_type, str(document_id))
    return document


def get_document(
    session: Session,
    model: type[DocumentT],
    document_id: UUID,
    entity_type: str,
) -> DocumentT:
    document = session.get(model, document_id)
    if document is None:
        raise NotFoundError(entity_type, str(document_id))
    return document


def apply_transition(
    workflow: Workflow,
    document,
    action: str,
    actor_id: UUID,
) -> Transition | None:
    """
    Resolve ``action`` for ``document`` and log the outcome.

    Does not change the status: the caller performs the stock side effects
    first and then sets ``document.status = transition.to_state``.

    Returns:
        The transition, or None when the action was already applied.

    Raises:
        IllegalTransitionError: the action is not legal from the current state.
    """
    transition = workflow.resolve(document.status, action, document.id)
    if transition is None:
        logger.info(
            "workflow_transition_noop",
            extra={
                "workflow": workflow.name,
                "entity_id": str(document.id),
                "action": action,
                "current_state": document.status,
                "actor_id": str(actor_id),
            },
        )
    return transition


def log_transition(
    workflow: Workflow,
    document,
    transition: Transition,
    actor_id: UUID,
) -> None:
    logger.info(
        "workflow_transition",
        extra={
            "workflow": workflow.name,
            "entity_id": str(document.id),
            "action": transition.action,
            "from_state": transition.from_state,
            "to_state": transition.to_state,
            "moves_stock": transition.moves_stock,
            "actor_id": str(actor_id),
        },
    )


def require_editable(document, editable_state: str, entity_type: str, action: str) -> None:
    """Raises ConflictError unless the document is still in ``editable_state``."""
    if document.status != editable_state:
        raise ConflictError(
            entity_type,
            str(document.id),
            document.status,
            f"only {editable_state} documents can {action}",
        )


def require_warehouse(session: Session, warehouse_id: UUID) -> Warehouse:
    """Raises NotFoundError, or ValidationError for an inactive warehouse."""
    warehouse = session.get(Warehouse, warehouse_id)
    if warehouse is None:
        raise NotFoundError("Warehouse", str(warehouse_id))
    if not warehouse.is_active:
        raise ValidationError("warehouse_id", f"warehouse {warehouse.code} is inactive")
    return warehouse


def load_products(session: Session, product_ids: Iterable[UUID]) -> dict[UUID, Product]:
    """Load products by id; every id must exist."""
    wanted = set(product_ids)
    if not wanted:
        return {}
    found = {
        p.id: p
        for p in session.execute(select(Product).where(Product.id.in_(wanted))).scalars()
    }
    missing = sorted(wanted - found.keys())
    if missing:
        raise NotFoundError("Product", str(missing[0]))
    return found


def require_products(session: Session, product_ids: Iterable[UUID]) -> dict[UUID, Product]:
    """Like ``load_products`` but every product must also be active."""
    found = load_products(session, product_ids)
    for product in found.values():
        if not product.is_active:
            raise ValidationError("product_id", f"product {product.sku} is inactive")
    return found
