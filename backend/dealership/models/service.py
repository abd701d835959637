from __future__ import annotations

import json

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date

SERVICE_PENDING = "pending"
SERVICE_COMPLETED = "completed"
SERVICE_STATUSES = (SERVICE_PENDING, SERVICE_COMPLETED)


class ServiceRecord(db.Model):
    """
    A service/repair job.

    parts_used holds the serialized list of part usages
    ({part_id, name, quantity, unit_price_cents}). Stock for those parts is
    consumed once, when the record is created.

    Invariant: total_cost_cents == labor_cost_cents + parts_cost_cents.
    """
    __tablename__ = "service_records"
    __table_args__ = (
        db.Index("ix_service_records_date", "service_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Optional: the serviced tractor may not come from our inventory
    tractor_id = db.Column(db.Integer, db.ForeignKey("tractors.id"), nullable=True, index=True)

    customer_name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=False)

    labor_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    parts_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    parts_used = db.Column(db.Text, nullable=True)

    service_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SERVICE_COMPLETED)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    tractor = db.relationship("Tractor", backref=db.backref("service_records", lazy=True))

    def parts_used_list(self) -> list[dict]:
        if not self.parts_used:
            return []
        return json.loads(self.parts_used)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tractor_id": self.tractor_id,
            "customer_name": self.customer_name,
            "description": self.description,
            "labor_cost_cents": self.labor_cost_cents,
            "parts_cost_cents": self.parts_cost_cents,
            "total_cost_cents": self.total_cost_cents,
            "parts_used": self.parts_used_list(),
            "service_date": to_iso_date(self.service_date),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
