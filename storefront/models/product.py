# storefront/models/product.py
from storefront.extensions import db
from storefront.timeutil import utcnow


class Product(db.Model):
    __tablename__ = "product"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category_slug = db.Column(db.String(120), nullable=False, index=True)
    images = db.Column(db.JSON, nullable=False, default=list)

    # per-currency list prices
    price_ngn = db.Column(db.Numeric(12, 2), nullable=True)
    price_usd = db.Column(db.Numeric(12, 2), nullable=True)
    price_eur = db.Column(db.Numeric(12, 2), nullable=True)
    price_gbp = db.Column(db.Numeric(12, 2), nullable=True)

    # whether custom tailoring (size modification) may be requested
    size_mods = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=utcnow)

    variants = db.relationship(
        "Variant",
        back_populates="product",
        lazy=True,
        cascade="all, delete-orphan",
    )

    def price_for(self, currency: str):
        """List price in `currency`, or None when the product has none."""
        return getattr(self, f"price_{(currency or '').lower()}", None)

    @property
    def primary_image(self):
        return (self.images or [None])[0]

    def __repr__(self) -> str:
        return f"<Product {self.name}>"
