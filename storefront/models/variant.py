# storefront/models/variant.py
from storefront.extensions import db


class Variant(db.Model):
    __tablename__ = "variant"
    __table_args__ = (
        db.UniqueConstraint("product_id", "color", "size", name="uq_variant_product_color_size"),
        db.CheckConstraint("stock >= 0", name="ck_variant_stock_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.String(64), db.ForeignKey("product.id", ondelete="CASCADE"), nullable=False, index=True
    )
    color = db.Column(db.String(60), nullable=False)
    size = db.Column(db.String(60), nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)
    weight = db.Column(db.Float, nullable=True)

    product = db.relationship("Product", back_populates="variants")

    def __repr__(self) -> str:  # pragma: no cover - debug aid
        return f"<Variant {self.product_id} {self.color}/{self.size} stock={self.stock}>"
