from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date

TRACTOR_IN_STOCK = "in_stock"
TRACTOR_SOLD = "sold"
TRACTOR_STATUSES = (TRACTOR_IN_STOCK, TRACTOR_SOLD)

TRACTOR_NEW = "new"
TRACTOR_USED = "used"
TRACTOR_TYPES = (TRACTOR_NEW, TRACTOR_USED)


class Tractor(db.Model):
    """
    A tractor held (or formerly held) in dealership inventory.

    Lifecycle:
    - Created by purchase intake, or as a trade-in received while selling
      another tractor. Either way it starts as in_stock.
    - Moves to sold exactly once, through the sale workflow.

    exchange_tractor_id is a plain reference to the trade-in received for
    this tractor. The trade-in has its own lifecycle and can be sold later.
    """
    __tablename__ = "tractors"
    __table_args__ = (
        db.Index("ix_tractors_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    brand = db.Column(db.String(64), nullable=False)
    model = db.Column(db.String(64), nullable=False)
    year = db.Column(db.Integer, nullable=True)
    type = db.Column(db.String(8), nullable=False, default=TRACTOR_NEW)

    # Unique when present (NULLs do not collide); the tractor service checks first
    chassis_number = db.Column(db.String(64), nullable=True, index=True, unique=True)
    engine_number = db.Column(db.String(64), nullable=True)

    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    supplier_name = db.Column(db.String(128), nullable=True)
    purchase_date = db.Column(db.Date, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=TRACTOR_IN_STOCK)

    sale_price_cents = db.Column(db.Integer, nullable=True)
    sale_date = db.Column(db.Date, nullable=True)
    customer_name = db.Column(db.String(128), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    exchange_tractor_id = db.Column(db.Integer, db.ForeignKey("tractors.id"), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    exchange_tractor = db.relationship("Tractor", remote_side=[id], foreign_keys=[exchange_tractor_id])
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Tractor id={self.id} {self.brand} {self.model} status={self.status}>"

    @property
    def display_name(self) -> str:
        return f"{self.brand} {self.model}"

    def summary_dict(self) -> dict:
        return {
            "id": self.id,
            "brand": self.brand,
            "model": self.model,
            "year": self.year,
            "chassis_number": self.chassis_number,
            "purchase_price_cents": self.purchase_price_cents,
            "status": self.status,
        }

    def to_dict(self) -> dict:
        exchange = self.exchange_tractor
        return {
            "id": self.id,
            "brand": self.brand,
            "model": self.model,
            "year": self.year,
            "type": self.type,
            "chassis_number": self.chassis_number,
            "engine_number": self.engine_number,
            "purchase_price_cents": self.purchase_price_cents,
            "supplier_name": self.supplier_name,
            "purchase_date": to_iso_date(self.purchase_date),
            "status": self.status,
            "sale_price_cents": self.sale_price_cents,
            "sale_date": to_iso_date(self.sale_date),
            "customer_name": self.customer_name,
            "notes": self.notes,
            "exchange_tractor_id": self.exchange_tractor_id,
            "exchange_tractor": exchange.summary_dict() if exchange is not None else None,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class TractorBrand(db.Model):
    """Catalog of brand names offered when entering tractors."""
    __tablename__ = "tractor_brands"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)

    models = db.relationship(
        "TractorModel",
        backref="brand",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="TractorModel.name",
    )

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class TractorModel(db.Model):
    __tablename__ = "tractor_models"
    __table_args__ = (
        db.UniqueConstraint("brand_id", "name", name="uq_tractor_models_brand_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    brand_id = db.Column(db.Integer, db.ForeignKey("tractor_brands.id"), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "brand_id": self.brand_id, "name": self.name}


class PartCategory(db.Model):
    """Catalog of spare part categories offered when entering parts."""
    __tablename__ = "part_categories"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)

    names = db.relationship(
        "PartName",
        backref="category",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="PartName.name",
    )

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class PartName(db.Model):
    __tablename__ = "part_names"
    __table_args__ = (
        db.UniqueConstraint("category_id", "name", name="uq_part_names_category_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("part_categories.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "category_id": self.category_id, "name": self.name}


class SparePart(db.Model):
    """
    Spare part stock record.

    Invariant: stock_quantity >= 0. Stock only moves through
    parts_service.try_adjust_stock (direct sales, service consumption,
    manual restock); plain updates never touch it.
    """
    __tablename__ = "spare_parts"
    __table_args__ = (
        db.UniqueConstraint("part_number", name="uq_spare_parts_part_number"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_spare_parts_stock_non_negative"),
        db.Index("ix_spare_parts_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(128), nullable=False)
    part_number = db.Column(db.String(64), nullable=False)
    category = db.Column(db.String(64), nullable=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)

    # Low-stock marker: stock_quantity <= min_stock
    min_stock = db.Column(db.Integer, nullable=False, default=5)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<SparePart id={self.id} part_number={self.part_number!r} stock={self.stock_quantity}>"

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.min_stock

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "part_number": self.part_number,
            "category": self.category,
            "stock_quantity": self.stock_quantity,
            "unit_price_cents": self.unit_price_cents,
            "min_stock": self.min_stock,
            "is_low_stock": self.is_low_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
