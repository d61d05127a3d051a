from __future__ import annotations

import unittest

from fastapi.testclient import TestClient

from firemock.settings import load_settings
from scripts.run_seeded_emulator import build_seeded_apps

ROOT = "projects/demo-project/databases/(default)/documents"


class SeededEmulatorTest(unittest.TestCase):
    def test_seed_data_is_served(self) -> None:
        settings = load_settings(env={}, dotenv_path="does-not-exist.env")
        firestore_app, auth_app = build_seeded_apps(settings)
        firestore = TestClient(firestore_app)
        auth = TestClient(auth_app)

        alice = firestore.get(f"/v1/{ROOT}/users/alice").json()
        products = firestore.get(f"/v1/{ROOT}/products").json()
        collections = firestore.post(f"/v1/{ROOT}:listCollectionIds", json={}).json()
        users = auth.post(
            "/identitytoolkit.googleapis.com/v1/projects/demo-project/accounts:lookup",
            json={"email": ["alice@example.com", "bob@example.com"]},
        ).json()

        self.assertEqual(alice["fields"]["home"], {"geoPointValue": {"latitude": 35.6812, "longitude": 139.7671}})
        self.assertEqual(alice["fields"]["joinedAt"], {"timestampValue": "2024-01-15T09:00:00Z"})
        self.assertEqual(len(products["documents"]), 3)
        self.assertEqual(collections["collectionIds"], ["products", "users"])
        self.assertEqual([user["localId"] for user in users["users"]], ["alice", "bob"])


if __name__ == "__main__":
    unittest.main()
