"""Validity status lookup consumed by the registry list filters."""

from __future__ import annotations

from sqlalchemy.orm import Session

from . import models

# purpose: resolve which valid_id codes count as active
# inputs: SQLAlchemy session bound to the registry store
# outputs: set of integer status codes
# status: active

ACTIVE_STATUS_NAME = "valid"

DEFAULT_VALID_STATUSES: dict[int, str] = {
    1: "valid",
    2: "invalid",
    3: "invalid-temporarily",
}


class ValidLookup:
    """Read-only view over the ``valid`` status table."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def active_ids(self) -> set[int]:
        rows = (
            self.db.query(models.Valid.id)
            .filter(models.Valid.name == ACTIVE_STATUS_NAME)
            .all()
        )
        return {row[0] for row in rows}


def seed_valid_statuses(db: Session) -> None:
    """Insert the default status codes that are not present yet."""

    existing = {row[0] for row in db.query(models.Valid.id).all()}
    for status_id, name in DEFAULT_VALID_STATUSES.items():
        if status_id not in existing:
            db.add(models.Valid(id=status_id, name=name))
    db.commit()
