# welfare/services/regions.py
"""
Region hierarchy: state -> district -> area -> unit.

The tree is the single source of truth for geography. Applications, users and
payments only hold region ids, so regions are soft-deleted and never removed.
"""

from __future__ import annotations

from typing import Iterable

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from welfare.errors import NotFoundError, StoreError, ValidationError
from welfare.extensions import db
from welfare.models import REGION_PARENT_TYPE, REGION_TYPES, Region


def _clean_str(value: str | None) -> str:
    return (value or "").strip()


def create_region(
    name: str,
    code: str,
    type: str,
    parent_id: int | None = None,
    *,
    commit: bool = True,
) -> Region:
    name = _clean_str(name)
    code = _clean_str(code).upper()
    region_type = _clean_str(type).lower()

    errors: dict[str, str] = {}
    if not name:
        errors["name"] = "Region name is required."
    if not code:
        errors["code"] = "Region code is required."
    if region_type not in REGION_TYPES:
        errors["type"] = f"Type must be one of: {', '.join(REGION_TYPES)}."
    if errors:
        raise ValidationError(errors)

    expected_parent = REGION_PARENT_TYPE[region_type]
    parent = None
    if expected_parent is None:
        if parent_id is not None:
            raise ValidationError({"parent_id": "A state cannot have a parent."})
    else:
        if parent_id is None:
            raise ValidationError({"parent_id": f"A {region_type} must have a parent {expected_parent}."})
        parent = db.session.get(Region, parent_id)
        if parent is None:
            raise ValidationError({"parent_id": "Parent region not found."})
        if parent.type != expected_parent:
            raise ValidationError(
                {"parent_id": f"Invalid hierarchy: {region_type} cannot be a child of {parent.type}."}
            )
        if not parent.is_active:
            raise ValidationError({"parent_id": "Parent region is inactive."})

    # NULL parent_id does not collide in a UNIQUE constraint, so states are checked here.
    duplicate = Region.query.filter_by(parent_id=parent_id, code=code).first()
    if duplicate:
        raise ValidationError({"code": "Code already used under this parent."})

    region = Region(name=name, code=code, type=region_type, parent=parent)
    db.session.add(region)

    if commit:
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ValidationError({"code": "Code already used under this parent."})
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Create region %s failed", code)
            raise StoreError("Create region")
    else:
        db.session.flush()

    return region


def deactivate_region(region_id: int, *, commit: bool = True) -> Region:
    region = db.session.get(Region, region_id)
    if region is None:
        raise NotFoundError("Region")

    region.is_active = False
    if commit:
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Deactivate region %s failed", region_id)
            raise StoreError("Deactivate region")

    current_app.logger.info("Region %s (%s) deactivated", region.id, region.code)
    return region


def descendant_ids(region_ids: Iterable[int], *, include_self: bool = True) -> set[int]:
    """
    All ids underneath the given regions, walking one level per query.
    The tree is at most four levels deep, so this is at most three queries.
    Inactive regions are included: old records still point at them.
    """
    roots = {rid for rid in region_ids if rid is not None}
    found = set(roots) if include_self else set()
    frontier = roots

    while frontier:
        rows = db.session.query(Region.id).filter(Region.parent_id.in_(frontier)).all()
        children = {row.id for row in rows} - found
        found |= children
        frontier = children

    return found


def region_path(region: Region) -> str:
    parts = [region.name]
    current = region.parent
    while current is not None:
        parts.insert(0, current.name)
        current = current.parent
    return " > ".join(parts)


def hierarchy_tree(parent_id: int | None = None) -> list[dict]:
    regions = (
        Region.query.filter_by(parent_id=parent_id, is_active=True)
        .order_by(Region.name.asc())
        .all()
    )
    return [
        {
            "id": r.id,
            "name": r.name,
            "code": r.code,
            "type": r.type,
            "children": hierarchy_tree(r.id),
        }
        for r in regions
    ]
