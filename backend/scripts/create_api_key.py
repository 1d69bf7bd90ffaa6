"""Create an API key (and optionally a store) for a user.

The raw key is printed once; only its hash is stored.
"""

import argparse
import uuid

from app.core.database import SessionLocal, init_db
from app.repositories.api_key_repository import ApiKeyRepository
from app.repositories.store_repository import StoreRepository
from app.schemas.api_key import ApiKeyCreate, ApiKeyResponse
from app.schemas.store import StoreCreate


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--user-id", type=uuid.UUID, default=None, help="defaults to a new id")
    parser.add_argument("--name", default=None, help="label for the key")
    parser.add_argument("--store", default=None, help="also create a store with this name")
    args = parser.parse_args()

    init_db()
    user_id = args.user_id or uuid.uuid4()
    db = SessionLocal()
    try:
        api_key, raw_key = ApiKeyRepository(db).create(
            ApiKeyCreate(user_id=user_id, name=args.name)
        )
        print(ApiKeyResponse.model_validate(api_key).model_dump_json(indent=2))
        print(f"user_id: {user_id}")
        print(f"api_key: {raw_key}")
        if args.store:
            store = StoreRepository(db).create(StoreCreate(name=args.store), owner_user_id=user_id)
            print(f"store_id: {store.id}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
