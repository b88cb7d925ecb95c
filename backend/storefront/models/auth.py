from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


ROLE_OWNER = "Owner"
ROLE_ADMIN = "Admin"
ROLE_PROPRIETOR = "Proprietor"
ROLE_USER = "User"
DEFAULT_ROLES = (ROLE_OWNER, ROLE_ADMIN, ROLE_PROPRIETOR, ROLE_USER)

TIER_BRONZE = "Bronze"
TIER_SILVER = "Silver"
TIER_GOLD = "Gold"
TIER_PLATINUM = "Platinum"
TIERS = (TIER_BRONZE, TIER_SILVER, TIER_GOLD, TIER_PLATINUM)


class User(db.Model):
    """
    Identity for customers, proprietors and the owner.

    The loyalty tier is an explicit field. It is only ever written by
    tier_service.recompute_tier, which derives it from sales history.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint(
            "tier IN ('Bronze', 'Silver', 'Gold', 'Platinum')",
            name="ck_users_tier",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(255), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    tier = db.Column(db.String(16), nullable=False, default=TIER_BRONZE)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_guest = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} tier={self.tier}>"

    @property
    def role_names(self) -> set[str]:
        return {ur.role.name for ur in self.user_roles}

    def has_role(self, *names: str) -> bool:
        wanted = {n.lower() for n in names}
        return any(r.lower() in wanted for r in self.role_names)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "tier": self.tier,
            "roles": sorted(self.role_names),
            "is_active": self.is_active,
            "is_guest": self.is_guest,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class Role(db.Model):
    """Named role; authorization is role-based (Owner, Admin, Proprietor, User)."""
    __tablename__ = "roles"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


class UserRole(db.Model):
    """User-Role association."""
    __tablename__ = "user_roles"
    __table_args__ = (
        db.UniqueConstraint("user_id", "role_id", name="uq_user_roles"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role_id = db.Column(db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)

    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship(
        "User",
        backref=db.backref("user_roles", lazy=True, cascade="all, delete-orphan"),
    )
    role = db.relationship("Role", backref=db.backref("user_roles", lazy=True))


class SessionToken(db.Model):
    """
    Bearer session. Only the SHA-256 of the token is stored.

    cart_json holds the serialised shopping cart, so a cart is visible to
    exactly one session and disappears with it.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(255), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)

    cart_json = db.Column(db.JSON, nullable=True)

    user = db.relationship(
        "User",
        backref=db.backref("sessions", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
