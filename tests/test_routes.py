"""
Integration tests for the Flask routes.

The app is built with TestingConfig (no background refresh), a MagicMock
order store client and a fixed clock. The snapshot is seeded directly.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

import config
from app import create_app
from core.exceptions import PersistenceUnavailableError
from models.snapshot import WorkshopSnapshot


NOW_ISO = "2025-05-10T12:00:00.000Z"
SERIALS = {"1600-1": {"type": "INNATO", "tuning": "A3", "color": "B", "frequency": "440"}}


# Fixtures

@pytest.fixture
def client_mock():
    mock_client = MagicMock()
    mock_client.update_order_item.return_value = {}
    mock_client.update_order.return_value = {}
    mock_client.update_material.return_value = {}
    return mock_client


@pytest.fixture
def app(client_mock, fixed_now, tmp_path, monkeypatch, two_item_snapshot):
    monkeypatch.setattr(config.TestingConfig, "PREFERENCES_PATH", str(tmp_path / "preferences.json"))
    serials_path = tmp_path / "serials.json"
    serials_path.write_text(json.dumps(SERIALS), encoding="utf-8")
    monkeypatch.setattr(config.TestingConfig, "SERIAL_DATABASE_PATH", str(serials_path))

    flask_app = create_app("config.TestingConfig", client=client_mock, clock=lambda: fixed_now)
    flask_app.config["SNAPSHOT_SERVICE"].set_snapshot(two_item_snapshot)
    yield flask_app
    flask_app.config["STAGE_SERVICE"].shutdown()


@pytest.fixture
def http(app):
    return app.test_client()


def item_from(app, item_id):
    return app.config["SNAPSHOT_SERVICE"].get_snapshot().get_item(item_id)


class TestHealth:

    def test_healthy(self, http):
        response = http.get("/health")
        data = response.get_json()

        assert response.status_code == 200
        assert data["checks"]["snapshot"] == "ok"
        assert data["checks"]["refresh_thread"] == "stopped"
        assert data["snapshot"]["items"] == 2

    def test_empty_snapshot_is_degraded(self, app, http):
        app.config["SNAPSHOT_SERVICE"].set_snapshot(WorkshopSnapshot.create_empty())

        response = http.get("/health")
        assert response.status_code == 503
        assert response.get_json()["checks"]["snapshot"] == "empty"


class TestWorksheetRoutes:

    def test_default_worksheet(self, http):
        data = http.get("/api/worksheet").get_json()

        assert data["total"] == 2
        assert data["orderIds"] == [1]
        first = data["items"][0]
        assert first["orderNumber"] == "SW-1600"
        assert first["customerName"] == "Ana Flute"
        assert first["attributes"]["type"] == "INNATO"
        assert first["stages"]["waxing"] is False
        assert first["drying"]["complete"] is False

    def test_type_filter(self, http):
        data = http.get("/api/worksheet?type=natey").get_json()
        assert [row["id"] for row in data["items"]] == [2]
        assert data["items"][0]["attributes"]["tuningNote"] == "Am4"

    def test_repeated_color_arguments(self, http):
        data = http.get("/api/worksheet?color=C&color=B").get_json()
        assert [row["id"] for row in data["items"]] == [1]

    def test_order_range_from_query(self, http):
        data = http.get("/api/worksheet?minOrder=1700").get_json()
        assert data["total"] == 0
        assert data["orderIds"] == []

    def test_not_ready(self, app, http, client_mock):
        """No data and a failed refresh gives 503, not an empty worksheet."""
        snapshot_service = app.config["SNAPSHOT_SERVICE"]
        snapshot_service.set_snapshot(WorkshopSnapshot.create_empty())
        client_mock.fetch_orders.side_effect = PersistenceUnavailableError("GET", "/api/orders", 1)
        snapshot_service.force_refresh()

        response = http.get("/api/worksheet")
        assert response.status_code == 503
        assert "error" in response.get_json()

    def test_item_attributes(self, http):
        data = http.get("/api/items/1/attributes").get_json()
        assert data["itemId"] == 1
        assert data["attributes"]["colorCode"] == "B"
        assert data["attributes"]["sources"]["type"] == "serial"

    def test_unknown_item_attributes(self, http):
        response = http.get("/api/items/99/attributes")
        assert response.status_code == 404
        assert response.get_json()["details"]["record_id"] == 99

    def test_waiting_time(self, http):
        data = http.get("/api/waiting-time").get_json()
        assert data["pendingItemCount"] == 2
        assert data["finalWaitDays"] == 14

    def test_not_started_items(self, http):
        data = http.get("/api/not-started-items").get_json()

        assert data["count"] == 2
        assert [row["id"] for row in data["items"]] == [1, 2]
        assert data["next"]["serialNumber"] == "SW-1600-1"
        assert data["next"]["orderNumber"] == "SW-1600"

    def test_started_item_leaves_not_started_list(self, http):
        http.post("/api/items/1/stages/validated", json={"complete": True})

        data = http.get("/api/not-started-items").get_json()
        assert [row["id"] for row in data["items"]] == [2]
        assert data["next"]["id"] == 2


class TestStageRoutes:

    def test_tick_item_stage(self, app, http, client_mock):
        response = http.post("/api/items/2/stages/waxing", json={"complete": True})

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "committed"
        assert data["item"]["statusChangeDates"] == {"waxing": NOW_ISO}
        assert item_from(app, 2).status_change_dates == {"waxing": NOW_ISO}

    def test_order_stage(self, http, client_mock):
        response = http.post("/api/orders/1/stages/validated", json={"complete": True})
        assert response.status_code == 200
        client_mock.update_order.assert_called_once_with(1, {"statusChangeDates": {"validated": NOW_ISO}})

    def test_complete_must_be_boolean(self, http, client_mock):
        response = http.post("/api/items/2/stages/waxing", json={"complete": "yes"})
        assert response.status_code == 400
        client_mock.update_order_item.assert_not_called()

    def test_unknown_stage(self, http):
        response = http.post("/api/items/2/stages/polishing", json={"complete": True})
        assert response.status_code == 400
        assert response.get_json()["details"]["stage"] == "polishing"

    def test_store_failure_rolls_back(self, app, http, client_mock):
        client_mock.update_order_item.side_effect = PersistenceUnavailableError(
            "PATCH", "/api/order-items/2", 1, "connection refused"
        )

        response = http.post("/api/items/2/stages/waxing", json={"complete": True})

        assert response.status_code == 502
        assert response.get_json()["details"]["field"] == "waxing"
        assert item_from(app, 2).status_change_dates == {}

    def test_async_write_and_poll(self, app, http):
        response = http.post("/api/items/2/stages/testing", json={"complete": True, "async": True})
        assert response.status_code == 202
        write_id = response.get_json()["writeId"]

        app.config["STAGE_SERVICE"].shutdown()

        poll = http.get(f"/api/writes/{write_id}").get_json()
        assert poll["complete"] is True
        assert poll["result"]["status"] == "committed"

        # Results are consumed on read
        assert http.get(f"/api/writes/{write_id}").status_code == 404


class TestNotesArchivePackaging:

    def test_notes_are_sanitized(self, app, http, client_mock):
        response = http.put("/api/items/1/notes", json={"notes": "  <b>crack</b> near mouthpiece "})

        assert response.status_code == 200
        assert item_from(app, 1).notes == "crack near mouthpiece"
        client_mock.update_order_item.assert_called_once_with(1, {"notes": "crack near mouthpiece"})

    def test_order_notes(self, http):
        data = http.put("/api/orders/1/notes", json={"notes": "rush"}).get_json()
        assert data["order"]["notes"] == "rush"

    def test_archive_requires_boolean(self, http):
        assert http.put("/api/orders/1/archive", json={"archived": 1}).status_code == 400

    def test_archive_hides_from_worksheet(self, http):
        assert http.put("/api/orders/1/archive", json={"archived": True}).status_code == 200
        assert http.get("/api/worksheet").get_json()["total"] == 0
        assert http.get("/api/worksheet?includeArchived=true").get_json()["total"] == 2

    def test_packaging(self, app, http):
        response = http.put("/api/items/1/packaging", json={"bagType": "Innato", "boxSize": "30x30x30"})

        assert response.status_code == 200
        specs = item_from(app, 1).specifications
        assert specs["bagType"] == "Innato"
        assert specs["Bag Type"] == "Innato"
        assert specs["boxSize"] == "30x30x30"
        assert "bagSize" not in specs

    def test_body_must_be_object(self, http):
        response = http.put("/api/items/1/packaging", json=["Innato"])
        assert response.status_code == 400


class TestJointBoxRoute:

    def test_joint_box(self, app, http, client_mock):
        client_mock.list_materials.return_value = [{"id": 7, "quantity": 4}]

        response = http.post(
            "/api/orders/1/joint-box",
            json={"itemIds": [1, 2], "boxSize": "35x35x35", "materialId": 7},
        )

        assert response.status_code == 200
        assert [item["id"] for item in response.get_json()["items"]] == [1, 2]
        assert item_from(app, 2).specifications["useJointBox"] is True
        client_mock.update_material.assert_called_once_with(7, {"quantity": 3})

    @pytest.mark.parametrize("body", [
        {"itemIds": [], "boxSize": "35x35x35"},
        {"itemIds": ["1"], "boxSize": "35x35x35"},
        {"itemIds": [True], "boxSize": "35x35x35"},
        {"itemIds": [1]},
        {"itemIds": [1], "boxSize": "35x35x35", "materialId": "7"},
    ])
    def test_invalid_bodies(self, http, client_mock, body):
        response = http.post("/api/orders/1/joint-box", json=body)
        assert response.status_code == 400
        client_mock.update_order_item.assert_not_called()

    def test_item_of_unknown_order(self, http):
        response = http.post("/api/orders/5/joint-box", json={"itemIds": [1], "boxSize": "20x20x20"})
        assert response.status_code == 404


class TestPreferencesRoutes:

    def test_get_defaults(self, http):
        data = http.get("/api/preferences").get_json()
        assert data == {"nonWorkingPeriods": [], "timeWindowDays": 365}

    def test_update_feeds_waiting_time(self, http, tmp_path):
        response = http.put(
            "/api/preferences",
            json={"nonWorkingPeriods": [{"start": "2025-08-01", "end": "2025-08-21", "reason": "Summer"}]},
        )

        assert response.status_code == 200
        assert (tmp_path / "preferences.json").exists()
        waiting = http.get("/api/waiting-time").get_json()
        assert waiting["nonWorkingDays"] == 21
        assert waiting["finalWaitDays"] == 2 + 7 + 21

    def test_invalid_window(self, http):
        response = http.put("/api/preferences", json={"timeWindowDays": 7})
        assert response.status_code == 400
        assert response.get_json()["details"]["allowed"] == [30, 90, 180, 365, 0]

    def test_non_object_body(self, http):
        assert http.put("/api/preferences", data="nope", content_type="text/plain").status_code == 400


class TestErrors:

    def test_unknown_route_is_json(self, http):
        response = http.get("/api/nothing-here")
        assert response.status_code == 404
        assert response.get_json()["error"] == "Not Found"

    def test_unknown_write_id(self, http):
        assert http.get("/api/writes/deadbeef").status_code == 404


class TestShutdownRegistration:

    def test_testing_app_skips_atexit(self, client_mock, tmp_path, monkeypatch):
        monkeypatch.setattr(config.TestingConfig, "PREFERENCES_PATH", str(tmp_path / "preferences.json"))

        with patch("app.atexit.register") as mock_register:
            flask_app = create_app("config.TestingConfig", client=client_mock)

        mock_register.assert_not_called()
        flask_app.config["STAGE_SERVICE"].shutdown()
