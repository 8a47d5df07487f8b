"""Tests for the HTTP routes."""
import json

from fastapi.testclient import TestClient

from zipgeo.main import create_app
from tests.sample_data import HEADER, SAMPLE_CSV, SHARED_COORDS_CSV


def populate(client: TestClient):
    response = client.post("/populate")
    assert response.status_code == 200, response.text
    return response


class TestHealth:
    """Tests for service info endpoints."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] == "healthy"
        assert response.json()["index_epoch"] is None


class TestZipcode:
    """Tests for /zipcode/{zip}."""

    def test_returns_record(self, client):
        populate(client)
        response = client.get("/zipcode/00501")
        assert response.status_code == 200
        data = response.json()
        assert data["zip"] == "00501"
        assert data["primary_city"] == "Holtsville"
        assert data["latitude"] == 40.81
        assert data["longitude"] == -73.04

    def test_non_numeric_zip(self, client):
        response = client.get("/zipcode/abc")
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid ZIP code"

    def test_wrong_length_zip(self, client):
        assert client.get("/zipcode/1234").status_code == 400
        assert client.get("/zipcode/123456").status_code == 400

    def test_trailing_newline_zip(self, client):
        populate(client)
        response = client.get("/zipcode/00501%0A")
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid ZIP code"

    def test_unknown_zip(self, client):
        populate(client)
        response = client.get("/zipcode/99999")
        assert response.status_code == 404
        assert response.json()["detail"] == "ZIP code not found"


class TestReverse:
    """Tests for /reverse/{lat}/{long}."""

    def test_exact_coordinates(self, client):
        populate(client)
        response = client.get("/reverse/40.81/-73.04")
        assert response.status_code == 200
        data = response.json()
        assert data["zipCode"] == "00501"
        assert data["city"] == "Holtsville"
        assert data["lat"] == 40.81
        assert data["long"] == -73.04
        assert data["result"] == {"zip": "00501", "latitude": 40.81, "longitude": -73.04}

    def test_no_zip_near_null_island(self, make_settings):
        with TestClient(create_app(make_settings(search_radius_km=1))) as client:
            populate(client)
            response = client.get("/reverse/0/0")
        assert response.status_code == 404

    def test_radius_override(self, client):
        populate(client)
        # Central Park is ~80 km from Holtsville
        assert client.get("/reverse/40.78/-73.97").status_code == 404
        response = client.get("/reverse/40.78/-73.97", params={"radius_km": 100})
        assert response.status_code == 200
        assert response.json()["zipCode"] == "00501"

    def test_radius_above_maximum(self, client):
        populate(client)
        response = client.get("/reverse/40.81/-73.04", params={"radius_km": 10_000})
        assert response.status_code == 400

    def test_non_positive_radius(self, client):
        populate(client)
        response = client.get("/reverse/40.81/-73.04", params={"radius_km": 0})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid radius value"

    def test_non_numeric_radius(self, client):
        populate(client)
        response = client.get("/reverse/40.81/-73.04", params={"radius_km": "abc"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid radius value"

    def test_configured_radius_invalid(self, make_settings):
        with TestClient(create_app(make_settings(search_radius_km=0))) as client:
            populate(client)
            response = client.get("/reverse/40.81/-73.04")
        assert response.status_code == 400

    def test_non_numeric_coordinates(self, client):
        response = client.get("/reverse/abc/-73.04")
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid latitude or longitude"

    def test_out_of_range_coordinates(self, client):
        assert client.get("/reverse/91/0").status_code == 400
        assert client.get("/reverse/0/-181").status_code == 400
        assert client.get("/reverse/nan/0").status_code == 400

    def test_before_populate(self, client):
        assert client.get("/reverse/40.81/-73.04").status_code == 404

    def test_empty_dataset(self, make_settings):
        with TestClient(create_app(make_settings(csv_text=HEADER))) as client:
            # A header-only file has no rows to publish
            assert client.post("/populate").status_code == 500
            assert client.get("/reverse/40.81/-73.04").status_code == 404

    def test_shared_coordinates_pick_first_row(self, make_settings):
        with TestClient(create_app(make_settings(csv_text=SHARED_COORDS_CSV))) as client:
            populate(client)
            response = client.get("/reverse/40.81/-73.04")
        assert response.status_code == 200
        assert response.json()["zipCode"] == "00501"

    def test_repopulate_serves_new_snapshot(self, make_settings, tmp_path):
        with TestClient(create_app(make_settings())) as client:
            populate(client)
            assert client.get("/reverse/40.81/-73.04").json()["zipCode"] == "00501"
            assert client.get("/health").json()["index_epoch"] == 1

            (tmp_path / "zips.csv").write_text(SAMPLE_CSV.replace("00501", "00502"))
            populate(client)
            assert client.get("/reverse/40.81/-73.04").json()["zipCode"] == "00502"
            assert client.get("/health").json()["index_epoch"] == 2


class TestPopulate:
    """Tests for /populate."""

    def test_reports_count(self, client):
        response = populate(client)
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text.startswith("Finished uploading 3 ZIP code datas in ")
        assert response.text.endswith(" seconds")

    def test_reports_skipped_rows(self, make_settings):
        csv_text = SAMPLE_CSV + "99999,STANDARD,0,Nowhere,,,ZZ,,,,NA,US,abc,-70.0,0\n"
        with TestClient(create_app(make_settings(csv_text=csv_text))) as client:
            response = populate(client)
        assert "(1 rows skipped)" in response.text

    def test_missing_source(self, make_settings):
        with TestClient(create_app(make_settings(csv_text=None))) as client:
            response = client.post("/populate")
        assert response.status_code == 500
        assert "error" in response.json()

    def test_unreadable_source(self, make_settings):
        with TestClient(create_app(make_settings(csv_text="zip,city\n00501,Holtsville\n"))) as client:
            response = client.post("/populate")
        assert response.status_code == 500
        assert "Missing columns" in response.json()["error"]

    def test_each_app_has_its_own_lock(self, make_settings):
        with TestClient(create_app(make_settings())) as first:
            populate(first)
            first_lock = first.app.state.populate_lock
        with TestClient(create_app(make_settings())) as second:
            populate(second)
            assert second.app.state.populate_lock is not first_lock


class TestBulkReads:
    """Tests for /bulk, /list, /all and /master."""

    def test_bulk(self, client):
        response = client.get("/bulk")
        assert response.status_code == 200
        entries = response.json()
        assert [e["key"] for e in entries] == ["00501", "02108", "90210"]
        assert json.loads(entries[0]["value"])["zip"] == "00501"
        assert entries[0]["metadata"] == {"zip": "00501", "long": -73.04, "latitude": 40.81}

    def test_bulk_missing_source(self, make_settings):
        with TestClient(create_app(make_settings(csv_text=None))) as client:
            assert client.get("/bulk").status_code == 500

    def test_list_and_master_are_aligned(self, client):
        populate(client)
        points = client.get("/list").json()
        master = client.get("/master").json()

        assert [p["zip"] for p in points] == ["00501", "02108", "90210"]
        assert len(points) == len(master)
        for point, record in zip(points, master):
            assert point["latitude"] == record["latitude"]
            assert point["longitude"] == record["longitude"]

    def test_master_matches_source(self, client):
        populate(client)
        master = client.get("/master").json()
        assert master[1]["unacceptable_cities"] == ["Beacon Hill", "Boston Public Library"]
        assert master[2]["irs_estimated_population"] == 19540.0

    def test_list_and_master_before_populate(self, client):
        assert client.get("/list").status_code == 500
        assert client.get("/master").status_code == 500

    def test_all_excludes_snapshot_keys(self, make_settings):
        with TestClient(create_app(make_settings(list_page_size=2))) as client:
            populate(client)
            response = client.get("/all")
        assert response.status_code == 200
        keys = response.json()
        assert [k["name"] for k in keys] == ["00501", "02108", "90210"]
        assert keys[0]["metadata"]["zip"] == "00501"

    def test_all_empty(self, client):
        assert client.get("/all").json() == []
