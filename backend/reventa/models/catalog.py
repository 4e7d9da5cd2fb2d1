from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class CatalogoCache(db.Model):
    """
    Denormalized copy of one external store product.

    data is the normalized product JSON served to clients. The table is a
    rebuildable cache; sales_count is local and survives resyncs.
    """
    __tablename__ = "catalogo_cache"
    __table_args__ = (
        db.UniqueConstraint("product_id", name="uq_catalogo_cache_product"),
        db.Index("ix_catalogo_cache_sales", "sales_count"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.String(64), nullable=False)
    data = db.Column(db.Text, nullable=False)
    brand = db.Column(db.String(128), nullable=False, default="", index=True)
    category = db.Column(db.String(255), nullable=False, default="")
    sex = db.Column(db.String(16), nullable=False, default="Unisex", index=True)
    sales_count = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "productId": self.product_id,
            "brand": self.brand,
            "category": self.category,
            "sex": self.sex,
            "salesCount": self.sales_count,
            "updatedAt": to_utc_z(self.updated_at),
        }
