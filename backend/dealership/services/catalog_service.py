# Overview: Tractor brand/model and part category/name catalogs used to fill intake forms.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import PartCategory, PartName, TractorBrand, TractorModel
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import atomic


class BrandNotFoundError(NotFoundError):
    pass


class ModelNotFoundError(NotFoundError):
    pass


def _clean_name(name, *, max_length: int = 64) -> str:
    name = str(name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if len(name) > max_length:
        raise ValidationError(f"name exceeds max length {max_length}")
    return name


def list_brands() -> list[TractorBrand]:
    return db.session.query(TractorBrand).order_by(TractorBrand.name.asc()).all()


def create_brand(name) -> tuple[TractorBrand, bool]:
    """
    Add a brand, or return the existing one (case-insensitive match).

    Returns (brand, created).
    """
    name = _clean_name(name)
    existing = (
        db.session.query(TractorBrand)
        .filter(func.lower(TractorBrand.name) == name.lower())
        .first()
    )
    if existing is not None:
        return existing, False

    def _op():
        brand = TractorBrand(name=name)
        db.session.add(brand)
        db.session.flush()
        return brand

    return atomic(_op), True


def delete_brand(brand_id: int) -> None:
    """Delete a brand together with its models."""
    def _op():
        brand = db.session.get(TractorBrand, brand_id)
        if brand is None:
            raise BrandNotFoundError("brand not found")
        db.session.delete(brand)
        db.session.flush()

    atomic(_op)


def list_models(brand_id: int | None = None) -> list[TractorModel]:
    query = db.session.query(TractorModel)
    if brand_id is not None:
        query = query.filter(TractorModel.brand_id == brand_id)
    return query.order_by(TractorModel.name.asc()).all()


def create_model(brand_id: int, name) -> TractorModel:
    name = _clean_name(name)

    def _duplicate():
        return ConflictError(f"model {name} already exists for this brand", details={"brand_id": brand_id})

    def _op():
        if db.session.get(TractorBrand, brand_id) is None:
            raise BrandNotFoundError("brand not found")
        duplicate = (
            db.session.query(TractorModel.id)
            .filter(TractorModel.brand_id == brand_id, func.lower(TractorModel.name) == name.lower())
            .first()
        )
        if duplicate is not None:
            raise _duplicate()
        model = TractorModel(brand_id=brand_id, name=name)
        db.session.add(model)
        db.session.flush()
        return model

    return atomic(_op, unique_errors={"tractor_models": _duplicate})


def delete_model(model_id: int) -> None:
    def _op():
        model = db.session.get(TractorModel, model_id)
        if model is None:
            raise ModelNotFoundError("model not found")
        db.session.delete(model)
        db.session.flush()

    atomic(_op)


# =============================================================================
# PARTS CATALOG: CATEGORIES AND NAMES
# =============================================================================

class PartCategoryNotFoundError(NotFoundError):
    pass


class PartNameNotFoundError(NotFoundError):
    pass


def list_part_categories() -> list[PartCategory]:
    return db.session.query(PartCategory).order_by(PartCategory.name.asc()).all()


def create_part_category(name) -> tuple[PartCategory, bool]:
    """
    Add a part category, or return the existing one (case-insensitive match).

    Returns (category, created).
    """
    name = _clean_name(name)
    existing = (
        db.session.query(PartCategory)
        .filter(func.lower(PartCategory.name) == name.lower())
        .first()
    )
    if existing is not None:
        return existing, False

    def _op():
        category = PartCategory(name=name)
        db.session.add(category)
        db.session.flush()
        return category

    return atomic(_op), True


def delete_part_category(category_id: int) -> None:
    """Delete a category together with its part names."""
    def _op():
        category = db.session.get(PartCategory, category_id)
        if category is None:
            raise PartCategoryNotFoundError("part category not found")
        db.session.delete(category)
        db.session.flush()

    atomic(_op)


def list_part_names(category_id: int) -> list[PartName]:
    return (
        db.session.query(PartName)
        .filter(PartName.category_id == category_id)
        .order_by(PartName.name.asc())
        .all()
    )


def create_part_name(category_id: int, name) -> PartName:
    name = _clean_name(name, max_length=128)

    def _duplicate():
        return ConflictError(
            f"part name {name} already exists in this category", details={"category_id": category_id}
        )

    def _op():
        if db.session.get(PartCategory, category_id) is None:
            raise PartCategoryNotFoundError("part category not found")
        duplicate = (
            db.session.query(PartName.id)
            .filter(PartName.category_id == category_id, func.lower(PartName.name) == name.lower())
            .first()
        )
        if duplicate is not None:
            raise _duplicate()
        part_name = PartName(category_id=category_id, name=name)
        db.session.add(part_name)
        db.session.flush()
        return part_name

    return atomic(_op, unique_errors={"part_names": _duplicate})


def delete_part_name(name_id: int) -> None:
    def _op():
        part_name = db.session.get(PartName, name_id)
        if part_name is None:
            raise PartNameNotFoundError("part name not found")
        db.session.delete(part_name)
        db.session.flush()

    atomic(_op)
