from __future__ import annotations

import argparse
import asyncio
from dataclasses import replace
from datetime import datetime, timezone
import logging

from firemock.api.app import create_app, create_auth_app
from firemock.api.routes.accounts import hash_password
from firemock.auth.users import UserDirectory, UserRecord
from firemock.firestore.store import DocumentStore
from firemock.firestore.values import GeoPoint, Reference
from firemock.main import serve
from firemock.settings import AppSettings, load_settings


def _seed_documents(store: DocumentStore) -> None:
    root = store.database.root
    store.create(
        f"{root}/users",
        {
            "name": "Alice",
            "age": 30,
            "joinedAt": datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc),
            "home": GeoPoint(35.6812, 139.7671),
            "tags": ["admin", "beta"],
        },
        document_id="alice",
    )
    store.create(
        f"{root}/users",
        {"name": "Bob", "age": 25, "manager": Reference(f"{root}/users/alice"), "tags": []},
        document_id="bob",
    )
    store.create(
        f"{root}/users/alice/posts",
        {"title": "Hello", "body": "First post", "likes": 3, "draft": False},
        document_id="hello",
    )
    for name, price in (("Widget", 9.99), ("Gadget", 24.5), ("Gizmo", 120)):
        store.create(f"{root}/products", {"name": name, "price": price, "stock": {"warehouse": 10, "store": 2}})


def _seed_users(directory: UserDirectory) -> None:
    directory.add(
        UserRecord(
            local_id="alice",
            email="alice@example.com",
            email_verified=True,
            display_name="Alice",
            password_hash=hash_password("password123"),
        )
    )
    directory.add(UserRecord(local_id="bob", email="bob@example.com", display_name="Bob"))


def build_seeded_apps(settings: AppSettings):
    store = DocumentStore(settings.database)
    _seed_documents(store)
    directory = UserDirectory()
    _seed_users(directory)
    return (
        create_app(settings=settings, document_store=store),
        create_auth_app(settings=settings, user_directory=directory),
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the emulators preloaded with sample documents and users.")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--auth-port", type=int, default=None)
    parser.add_argument("--dotenv", default=".env")
    args = parser.parse_args()

    settings = load_settings(dotenv_path=args.dotenv)
    settings = replace(
        settings,
        host=args.host or settings.host,
        port=args.port or settings.port,
        auth_port=args.auth_port or settings.auth_port,
    )
    logging.basicConfig(level=settings.log_level)

    firestore_app, auth_app = build_seeded_apps(settings)
    asyncio.run(serve(settings, firestore_app=firestore_app, auth_app=auth_app))


if __name__ == "__main__":
    main()
