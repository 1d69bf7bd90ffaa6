"""Store repository for data access."""

from uuid import UUID

from sqlalchemy.orm import Session

from app.models.store import Store
from app.models.store_user import StoreUser
from app.schemas.store import StoreCreate


class StoreRepository:
    """Repository for Store and StoreUser models."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, data: StoreCreate, owner_user_id: UUID) -> Store:
        """Create a store and make ``owner_user_id`` its first member."""
        store = Store(name=data.name, default_currency=data.default_currency.upper())
        self.db.add(store)
        self.db.flush()
        self.db.add(StoreUser(store_id=store.id, user_id=owner_user_id, role="owner"))
        self.db.commit()
        self.db.refresh(store)
        return store

    def get_by_id(self, store_id: UUID) -> Store | None:
        return self.db.query(Store).filter(Store.id == store_id).first()

    def get_by_user(self, user_id: UUID) -> list[Store]:
        """Get all stores the user is a member of."""
        return (
            self.db.query(Store)
            .join(StoreUser, StoreUser.store_id == Store.id)
            .filter(StoreUser.user_id == user_id)
            .order_by(Store.name.asc())
            .all()
        )

    def user_has_access(self, store_id: UUID, user_id: UUID) -> bool:
        return (
            self.db.query(StoreUser.id)
            .filter(StoreUser.store_id == store_id, StoreUser.user_id == user_id)
            .first()
            is not None
        )

    def add_user(self, store_id: UUID, user_id: UUID, role: str = "owner") -> StoreUser:
        membership = StoreUser(store_id=store_id, user_id=user_id, role=role)
        self.db.add(membership)
        self.db.commit()
        self.db.refresh(membership)
        return membership
