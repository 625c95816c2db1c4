# storefront/models/user.py
from flask_login import UserMixin

from storefront.extensions import db, bcrypt
from storefront.timeutil import utcnow


class User(db.Model, UserMixin):
    """Staff account used for the admin surface."""

    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(150), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=True, index=True)
    password_hash = db.Column(db.String(200), nullable=False)
    is_admin = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    offline_sales = db.relationship("OfflineSale", back_populates="staff", lazy=True)

    # --- Password handling ---------------------------------------------------
    def set_password(self, password: str) -> None:
        self.password_hash = bcrypt.generate_password_hash(password).decode("utf-8")

    def check_password(self, password: str) -> bool:
        try:
            return bcrypt.check_password_hash(self.password_hash, password)
        except ValueError:
            # malformed hash in the row
            return False

    def get_id(self):
        return str(self.id)

    def __repr__(self):
        return f"<User {self.username} email={self.email}>"
