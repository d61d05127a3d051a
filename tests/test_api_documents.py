from __future__ import annotations

import unittest

from fastapi.testclient import TestClient

from firemock.api.app import create_app
from firemock.firestore.paths import DatabaseId
from firemock.firestore.store import DocumentStore
from firemock.settings import load_settings

ROOT = "projects/demo-project/databases/(default)/documents"
BASE = f"/v1/{ROOT}"
OTHER_ROOT = "projects/my-app/databases/(default)/documents"
OTHER_BASE = f"/v1/{OTHER_ROOT}"


def _build_client() -> tuple[TestClient, DocumentStore]:
    settings = load_settings(env={}, dotenv_path="does-not-exist.env")
    store = DocumentStore(DatabaseId("demo-project"))
    app = create_app(settings=settings, document_store=store)
    return TestClient(app), store


def _fields(**values: dict) -> dict:
    return {"fields": values}


class DocumentApiTest(unittest.TestCase):
    def test_healthz(self) -> None:
        client, _ = _build_client()
        response = client.get("/healthz")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_create_get_and_duplicate(self) -> None:
        client, _ = _build_client()
        fields = {"name": {"stringValue": "Alice"}, "age": {"integerValue": "30"}, "note": {"nullValue": None}}

        created = client.post(f"{BASE}/users", params={"documentId": "alice"}, json={"fields": fields})
        self.assertEqual(created.status_code, 200)
        body = created.json()
        self.assertEqual(body["name"], f"{ROOT}/users/alice")
        self.assertEqual(body["fields"], fields)
        self.assertEqual(body["createTime"], body["updateTime"])
        self.assertTrue(body["createTime"].endswith("Z"))

        fetched = client.get(f"{BASE}/users/alice")
        self.assertEqual(fetched.status_code, 200)
        self.assertEqual(fetched.json(), body)

        duplicate = client.post(f"{BASE}/users", params={"documentId": "alice"}, json={"fields": {}})
        self.assertEqual(duplicate.status_code, 409)
        self.assertEqual(duplicate.json()["error"]["status"], "ALREADY_EXISTS")
        self.assertEqual(duplicate.json()["error"]["code"], 409)

    def test_create_with_auto_id_in_subcollection(self) -> None:
        client, _ = _build_client()

        response = client.post(f"{BASE}/users/alice/posts", json=_fields(title={"stringValue": "hi"}))

        self.assertEqual(response.status_code, 200)
        name = response.json()["name"]
        self.assertTrue(name.startswith(f"{ROOT}/users/alice/posts/"))
        self.assertEqual(len(name.rsplit("/", 1)[1]), 20)

    def test_get_missing_document(self) -> None:
        client, _ = _build_client()
        response = client.get(f"{BASE}/users/nobody")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["status"], "NOT_FOUND")

    def test_get_with_field_mask(self) -> None:
        client, store = _build_client()
        store.create(f"{ROOT}/users", {"a": 1, "b": 2, "c": 3}, document_id="alice")

        response = client.get(
            f"{BASE}/users/alice",
            params=[("mask.fieldPaths", "a"), ("mask.fieldPaths", "c")],
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["fields"], {"a": {"integerValue": "1"}, "c": {"integerValue": "3"}})

    def test_list_documents_and_paging(self) -> None:
        client, store = _build_client()
        for name in ("widget", "gadget", "gizmo"):
            store.create(f"{ROOT}/products", {"name": name})

        listed = client.get(f"{BASE}/products")
        self.assertEqual(listed.status_code, 200)
        self.assertEqual(len(listed.json()["documents"]), 3)
        self.assertNotIn("nextPageToken", listed.json())

        first = client.get(f"{BASE}/products", params={"pageSize": 2}).json()
        self.assertEqual(len(first["documents"]), 2)
        self.assertEqual(first["nextPageToken"], "2")

        second = client.get(f"{BASE}/products", params={"pageSize": 2, "pageToken": first["nextPageToken"]}).json()
        self.assertEqual(len(second["documents"]), 1)
        self.assertNotIn("nextPageToken", second)

        bad_token = client.get(f"{BASE}/products", params={"pageSize": 2, "pageToken": "abc"})
        self.assertEqual(bad_token.status_code, 400)

    def test_list_empty_collection_omits_documents(self) -> None:
        client, _ = _build_client()
        response = client.get(f"{BASE}/empty")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {})

    def test_patch_with_mask_merges(self) -> None:
        client, store = _build_client()
        store.create(f"{ROOT}/users", {"a": 1, "b": 2}, document_id="alice")

        response = client.patch(
            f"{BASE}/users/alice",
            params=[("updateMask.fieldPaths", "b"), ("updateMask.fieldPaths", "c")],
            json=_fields(b={"integerValue": "3"}, c={"integerValue": "4"}, d={"integerValue": "5"}),
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(store.get(f"{ROOT}/users/alice").to_dict(), {"a": 1, "b": 3, "c": 4})

    def test_patch_with_mask_and_exists_precondition(self) -> None:
        client, store = _build_client()

        missing = client.patch(
            f"{BASE}/users/ghost",
            params={"updateMask.fieldPaths": "a", "currentDocument.exists": "true"},
            json=_fields(a={"integerValue": "1"}),
        )
        self.assertEqual(missing.status_code, 404)
        self.assertIsNone(store.get(f"{ROOT}/users/ghost"))

        upsert = client.patch(
            f"{BASE}/users/ghost",
            params={"updateMask.fieldPaths": "a"},
            json=_fields(a={"integerValue": "1"}),
        )
        self.assertEqual(upsert.status_code, 200)
        self.assertEqual(store.get(f"{ROOT}/users/ghost").to_dict(), {"a": 1})

    def test_patch_without_mask_replaces(self) -> None:
        client, store = _build_client()
        created = store.create(f"{ROOT}/users", {"a": 1, "b": 2}, document_id="alice")

        response = client.patch(f"{BASE}/users/alice", json=_fields(c={"booleanValue": True}))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["fields"], {"c": {"booleanValue": True}})
        self.assertEqual(response.json()["createTime"], created.create_time.isoformat())

    def test_patch_create_only_precondition(self) -> None:
        client, store = _build_client()
        store.create(f"{ROOT}/users", {}, document_id="alice")

        conflict = client.patch(f"{BASE}/users/alice", params={"currentDocument.exists": "false"}, json=_fields())
        self.assertEqual(conflict.status_code, 409)

        created = client.patch(f"{BASE}/users/bob", params={"currentDocument.exists": "false"}, json=_fields())
        self.assertEqual(created.status_code, 200)
        self.assertEqual(created.json()["name"], f"{ROOT}/users/bob")

    def test_patch_rejects_nested_mask(self) -> None:
        client, _ = _build_client()
        response = client.patch(
            f"{BASE}/users/alice",
            params={"updateMask.fieldPaths": "address.city"},
            json=_fields(address={"mapValue": {}}),
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["status"], "INVALID_ARGUMENT")

    def test_delete_document(self) -> None:
        client, store = _build_client()
        store.create(f"{ROOT}/users", {}, document_id="alice")

        first = client.delete(f"{BASE}/users/alice")
        second = client.delete(f"{BASE}/users/alice")
        strict = client.delete(f"{BASE}/users/alice", params={"currentDocument.exists": "true"})

        self.assertEqual((first.status_code, first.json()), (200, {}))
        self.assertEqual((second.status_code, second.json()), (200, {}))
        self.assertEqual(strict.status_code, 404)
        self.assertEqual(store.count(), 0)

    def test_invalid_requests(self) -> None:
        client, store = _build_client()

        bad_value = client.post(f"{BASE}/users", json=_fields(age={"integerValue": "abc"}))
        self.assertEqual(bad_value.status_code, 400)
        self.assertIn("age", bad_value.json()["error"]["message"])

        bad_body = client.post(f"{BASE}/users", json={"fields": "nope"})
        self.assertEqual(bad_body.status_code, 400)
        self.assertEqual(bad_body.json()["error"]["status"], "INVALID_ARGUMENT")

        reserved_project = client.get("/v1/projects/__other__/databases/(default)/documents/users/alice")
        self.assertEqual(reserved_project.status_code, 400)
        self.assertEqual(reserved_project.json()["error"]["status"], "INVALID_ARGUMENT")

        foreign_name = client.post(
            f"{BASE}:batchGet",
            json={"documents": [f"{OTHER_ROOT}/users/alice"]},
        )
        self.assertEqual(foreign_name.status_code, 400)

        reserved = client.post(f"{BASE}/users", params={"documentId": "__id__"}, json=_fields())
        self.assertEqual(reserved.status_code, 400)
        self.assertEqual(store.count(), 0)

    def test_batch_get(self) -> None:
        client, store = _build_client()
        store.create(f"{ROOT}/users", {"a": 1}, document_id="alice")

        response = client.post(
            f"{BASE}:batchGet",
            json={"documents": [f"{ROOT}/users/alice", f"{ROOT}/users/bob"]},
        )

        self.assertEqual(response.status_code, 200)
        found, missing = response.json()
        self.assertEqual(found["found"]["name"], f"{ROOT}/users/alice")
        self.assertEqual(found["found"]["fields"], {"a": {"integerValue": "1"}})
        self.assertNotIn("missing", found)
        self.assertEqual(missing["missing"], f"{ROOT}/users/bob")
        self.assertNotIn("found", missing)
        self.assertIn("readTime", missing)

    def test_list_collection_ids(self) -> None:
        client, store = _build_client()
        store.create(f"{ROOT}/users", {}, document_id="alice")
        store.create(f"{ROOT}/products", {}, document_id="p1")
        store.create(f"{ROOT}/users/alice/posts", {}, document_id="post1")

        root = client.post(f"{BASE}:listCollectionIds", json={})
        nested = client.post(f"{BASE}/users/alice:listCollectionIds")
        paged = client.post(f"{BASE}:listCollectionIds", json={"pageSize": 1})

        self.assertEqual(root.json(), {"collectionIds": ["products", "users"]})
        self.assertEqual(nested.json(), {"collectionIds": ["posts"]})
        self.assertEqual(paged.json(), {"collectionIds": ["products"], "nextPageToken": "1"})

    def test_emulator_reset(self) -> None:
        client, store = _build_client()
        store.create(f"{ROOT}/users", {})

        client.post(f"{OTHER_BASE}/users", json={})

        response = client.delete("/emulator/v1/projects/demo-project/databases/(default)/documents")

        self.assertEqual((response.status_code, response.json()), (200, {}))
        self.assertEqual(store.count(), 0)
        self.assertEqual(len(client.get(f"{OTHER_BASE}/users").json()["documents"]), 1)

    def test_store_is_built_from_settings(self) -> None:
        settings = load_settings(env={"PROJECT_ID": "other-project"}, dotenv_path="does-not-exist.env")
        client = TestClient(create_app(settings=settings))

        created = client.post("/v1/projects/other-project/databases/(default)/documents/users", json={})

        self.assertEqual(created.status_code, 200)
        self.assertEqual(client.app.state.document_stores.databases(), [DatabaseId("other-project")])

    def test_other_projects_get_their_own_documents(self) -> None:
        client, store = _build_client()
        store.create(f"{ROOT}/users", {"project": "demo"}, document_id="alice")

        created = client.post(
            f"{OTHER_BASE}/users",
            params={"documentId": "alice"},
            json=_fields(project={"stringValue": "my-app"}),
        )
        fetched = client.get(f"{OTHER_BASE}/users/alice")
        listed = client.get(f"{OTHER_BASE}/users")
        collections = client.post(f"{OTHER_BASE}:listCollectionIds", json={})

        self.assertEqual(created.status_code, 200)
        self.assertEqual(created.json()["name"], f"{OTHER_ROOT}/users/alice")
        self.assertEqual(fetched.json()["fields"], {"project": {"stringValue": "my-app"}})
        self.assertEqual([document["name"] for document in listed.json()["documents"]], [f"{OTHER_ROOT}/users/alice"])
        self.assertEqual(collections.json(), {"collectionIds": ["users"]})
        self.assertEqual(store.get(f"{ROOT}/users/alice").to_dict(), {"project": "demo"})
        self.assertEqual(store.count(), 1)

        secondary = client.get("/v1/projects/my-app/databases/secondary/documents/users/alice")
        self.assertEqual(secondary.status_code, 404)

    def test_verbose_request_logs(self) -> None:
        settings = load_settings(env={"VERBOSE_REQUEST_LOGS": "true"}, dotenv_path="does-not-exist.env")
        client = TestClient(create_app(settings=settings))

        with self.assertLogs("firemock.api.middleware", level="INFO") as logs:
            client.get("/healthz")

        self.assertIn("[firestore] GET /healthz -> 200", logs.output[0])

    def test_unknown_route_uses_error_envelope(self) -> None:
        client, _ = _build_client()
        response = client.get("/v2/nothing")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["status"], "NOT_FOUND")


if __name__ == "__main__":
    unittest.main()
