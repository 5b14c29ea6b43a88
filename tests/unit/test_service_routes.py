"""HTTP tests for the multi-app service."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from loom_ui import __version__
from loom_ui.core.config import LoomConfig
from loom_ui.runtime.registry import AppRegistry
from loom_ui.runtime.server import create_service
from loom_ui.runtime.session_store import MemorySessionStore


@pytest.fixture
def registry() -> AppRegistry:
    return AppRegistry()


@pytest.fixture
def service(registry: AppRegistry, config: LoomConfig, store: MemorySessionStore) -> TestClient:
    return TestClient(create_service(registry=registry, config=config, store=store))


def _load(service: TestClient, app_file: Path, **extra: str) -> str:
    response = service.post("/load-app", json={"file_path": str(app_file), **extra})
    assert response.status_code == 200
    return str(response.json()["app_id"])


class TestManagement:
    def test_index_without_apps(self, service: TestClient) -> None:
        response = service.get("/")
        assert response.status_code == 200
        assert "No apps loaded yet." in response.text

    def test_status(self, service: TestClient) -> None:
        assert service.get("/api/status").json() == {
            "app": "loom-ui",
            "version": __version__,
            "port": 4567,
            "apps": 0,
        }

    def test_load_app(self, service: TestClient, app_file: Path) -> None:
        response = service.post("/load-app", json={"file_path": str(app_file)})
        body = response.json()
        assert body["success"] is True
        assert body["name"] == "Hello"
        assert body["url"] == f"/apps/{body['app_id']}/"

        apps = service.get("/api/apps").json()["apps"]
        assert [entry["id"] for entry in apps] == [body["app_id"]]
        assert apps[0]["title"] == "Hello"
        assert "Hello" in service.get("/").text

    def test_load_app_from_form_with_name(self, service: TestClient, app_file: Path) -> None:
        response = service.post("/load-app", data={"file_path": str(app_file), "name": "Greeter"})
        assert response.json()["name"] == "Greeter"

    def test_load_missing_file(self, service: TestClient, tmp_path: Path) -> None:
        response = service.post("/load-app", json={"file_path": str(tmp_path / "nope.py")})
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "File not found" in response.json()["error"]

    def test_load_without_path(self, service: TestClient) -> None:
        response = service.post("/load-app", json={})
        assert response.status_code == 400

    def test_delete_app(self, service: TestClient, app_file: Path) -> None:
        app_id = _load(service, app_file)
        response = service.delete(f"/apps/{app_id}")
        assert response.json() == {"success": True, "message": f"App {app_id} removed"}
        assert service.delete(f"/apps/{app_id}").status_code == 404

    def test_remove_app(self, service: TestClient, app_file: Path) -> None:
        app_id = _load(service, app_file)
        response = service.post("/remove-app", data={"app_id": app_id})
        assert response.json()["success"] is True
        missing = service.post("/remove-app", data={"app_id": app_id})
        assert missing.status_code == 404
        assert missing.json() == {"success": False, "error": "App not found"}

    def test_clear_apps(self, service: TestClient, app_file: Path, registry: AppRegistry) -> None:
        _load(service, app_file)
        _load(service, app_file)
        response = service.post("/clear-apps")
        assert response.json() == {"success": True, "message": "Removed 2 app(s)"}
        assert len(registry) == 0


class TestPerAppDispatch:
    def test_page_under_app_prefix(self, service: TestClient, app_file: Path) -> None:
        app_id = _load(service, app_file)
        response = service.get(f"/apps/{app_id}/")
        assert response.status_code == 200
        assert f'hx-post="/apps/{app_id}/update"' in response.text

    def test_prefix_without_trailing_slash(self, service: TestClient, app_file: Path) -> None:
        app_id = _load(service, app_file)
        assert service.get(f"/apps/{app_id}", follow_redirects=False).status_code == 200

    def test_unknown_app_creates_no_session(self, service: TestClient, store: MemorySessionStore) -> None:
        response = service.post("/apps/deadbeef/update", data={"name": "x"})
        assert response.status_code == 404
        assert len(store) == 0
        assert "set-cookie" not in response.headers

    def test_state_is_isolated_per_app(self, service: TestClient, app_file: Path) -> None:
        first = _load(service, app_file)
        second = _load(service, app_file)
        service.post(f"/apps/{first}/update", data={"name": "A"})
        service.post(f"/apps/{second}/update", data={"name": "B"})
        assert "Hi A" in service.get(f"/apps/{first}/").text
        assert "Hi B" in service.get(f"/apps/{second}/").text

    def test_removing_an_app_drops_its_state(
        self, service: TestClient, app_file: Path, store: MemorySessionStore
    ) -> None:
        app_id = _load(service, app_file)
        service.post(f"/apps/{app_id}/update", data={"name": "A"})
        assert len(store) == 1
        service.delete(f"/apps/{app_id}")
        assert len(store) == 0
