"""StoreUser join table linking users to the stores they manage."""

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, func

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid


class StoreUser(Base):
    """Membership of a user in a store. Members own the store's payment requests."""

    __tablename__ = "store_users"
    __table_args__ = (UniqueConstraint("store_id", "user_id", name="uq_store_users_store_user"),)

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    store_id = Column(
        UUIDType,
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(UUIDType, nullable=False, index=True)
    role = Column(String(20), nullable=False, default="owner")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
