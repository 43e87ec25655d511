import inspect
import sys
from io import BytesIO
from pathlib import Path

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient
from openpyxl import Workbook, load_workbook

sys.path.append(str(Path(__file__).resolve().parents[1]))

from worktracker.application import get_record_service, reset_record_state
from worktracker.domain import ActivityEntry
from worktracker.infrastructure import (
    InMemoryRecordRepository,
    NoOpSheetsSyncClient,
    SyncResult,
    configure_sheets_client,
)


class RecordingSyncClient:
    def __init__(self) -> None:
        self.calls: list[dict] = []

    def push(self, action, table, data=None, record_id=None):
        self.calls.append({"action": action, "table": table, "data": data, "record_id": record_id})
        return SyncResult(success=True)


@pytest.fixture(autouse=True)
def reset_state():
    reset_record_state()
    yield
    reset_record_state()
    configure_sheets_client(NoOpSheetsSyncClient())


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("WORKTRACKER_UPLOADS_ROOT", str(tmp_path / "uploads"))
    monkeypatch.delenv("SHEETS_SYNC_URL", raising=False)
    from worktracker.app import create_app

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


def _create(client, table: str, payload: dict) -> dict:
    response = client.post(f"/api/tables/{table}/records", json=payload)
    assert response.status_code == 200, response.text
    return response.json()


def test_record_crud_roundtrip(client):
    created = _create(
        client,
        "work_trackers",
        {"site_name": "Cibubur Tower", "regional": "Jabo Outer 1", "status_pekerjaan": "Open", "id": "ignored"},
    )
    record_id = created["id"]
    assert record_id != "ignored"
    assert created["created_at"] == created["updated_at"]

    fetched = client.get(f"/api/tables/work_trackers/records/{record_id}")
    assert fetched.status_code == 200
    assert fetched.json()["site_name"] == "Cibubur Tower"

    updated = client.put(
        f"/api/tables/work_trackers/records/{record_id}",
        json={"status_pekerjaan": "Close", "id": "other"},
    )
    assert updated.status_code == 200
    assert updated.json()["status_pekerjaan"] == "Close"
    assert updated.json()["id"] == record_id

    listing = client.get("/api/tables/work_trackers/records", params={"search": "cibubur"})
    assert [item["id"] for item in listing.json()["items"]] == [record_id]
    assert client.get("/api/tables/work_trackers/records", params={"regional": "Jabo Outer 2"}).json()["items"] == []

    deleted = client.delete(f"/api/tables/work_trackers/records/{record_id}")
    assert deleted.status_code == 200
    assert deleted.json() == {"deleted": record_id}
    assert client.get(f"/api/tables/work_trackers/records/{record_id}").status_code == 404


def test_record_validation_errors(client):
    missing = client.post("/api/tables/pic_data/records", json={"regional": "Jabo Outer 1"})
    assert missing.status_code == 400
    assert "nama_pic" in missing.json()["detail"]

    negative = client.post("/api/tables/work_trackers/records", json={"site_name": "X", "aging_days": -3})
    assert negative.status_code == 400

    not_numeric = client.post("/api/tables/module_tracker/records", json={"site_id": "M-1", "gap": "lots"})
    assert not_numeric.status_code == 400

    over_installed = client.post("/api/tables/module_tracker/records", json={"site_id": "M-2", "gap": -2})
    assert over_installed.status_code == 200

    created = _create(client, "pic_data", {"nama_pic": "Budi"})
    cleared = client.put(f"/api/tables/pic_data/records/{created['id']}", json={"nama_pic": ""})
    assert cleared.status_code == 400


def test_unknown_table_and_record(client):
    assert client.get("/api/tables/unknown/records").status_code == 404
    assert client.post("/api/tables/unknown/records", json={"a": 1}).status_code == 404
    assert client.get("/api/tables/car_data/records/nope").status_code == 404
    assert client.delete("/api/tables/car_data/records/nope").status_code == 404


def test_table_catalogue(client):
    items = client.get("/api/tables").json()["items"]
    by_name = {item["name"]: item for item in items}
    assert set(by_name) == {"work_trackers", "pic_data", "car_data", "cctv_data", "module_tracker", "smartlock_data"}
    assert by_name["work_trackers"]["mirrored"] is True
    assert by_name["module_tracker"]["mirrored"] is False


def test_work_tracker_summary_over_stored_records(client):
    for status in ["Close", "Close", "Open", "On Hold"]:
        _create(client, "work_trackers", {"site_name": "Site", "regional": "Jabo Outer 1", "status_pekerjaan": status})
    _create(client, "work_trackers", {"site_name": "Site", "regional": "Jabo Outer 2", "status_pekerjaan": "Close"})
    _create(client, "pic_data", {"nama_pic": "Budi", "validasi": "Aktif"})
    _create(client, "pic_data", {"nama_pic": "Sari", "validasi": "Inactive"})
    _create(client, "car_data", {"nomor_polisi": "B 1234 XY", "status_mobil": "AKTIF"})
    _create(client, "cctv_data", {"site_name": "Site", "status": "Online"})

    summary = client.get("/api/summary/work-trackers").json()
    assert summary["total"] == 5
    assert summary["close"] == 3
    assert summary["completion_rate"] == 60
    assert summary["bast_need_create"] == 3
    assert summary["outstanding_wip"] == 1
    assert summary["active_pic"] == 1
    assert summary["active_cars"] == 1
    assert summary["cctv_online"] == 1

    regional = client.get("/api/summary/work-trackers", params={"regional": "Jabo Outer 2"}).json()
    assert regional["total"] == 1
    assert regional["completion_rate"] == 100

    top = client.get("/api/summary/work-trackers", params={"top": 1}).json()
    assert [group["key"] for group in top["by_region"]] == ["Jabo Outer 1"]


def test_summary_over_posted_records(client):
    response = client.post(
        "/api/summary/smart-locks",
        json={
            "records": [
                {"installState": "INSTALLED"},
                {"installState": "NEED INSTALL URGENT"},
                {"installState": "LOST/BROKEN"},
            ]
        },
    )
    assert response.status_code == 200
    data = response.json()
    assert (data["total"], data["installed"], data["need_install"], data["lost"], data["progress"]) == (3, 1, 1, 1, 33)

    modules = client.post(
        "/api/summary/modules",
        params={"top": 1},
        json={
            "records": [
                {"install_status": "Done", "kab_kota": "A", "gap": 2},
                {"install_status": "Pending", "kab_kota": "A"},
                {"install_status": "Pending", "kab_kota": "B"},
            ]
        },
    ).json()
    assert modules["by_region"] == [{"key": "A", "total": 2, "completed": 1, "progress": 50}]
    assert modules["total_gap"] == "2"

    trackers = client.post(
        "/api/summary/work-trackers",
        json={"records": [{"workStatus": "Close"}], "pic": [{"validasi": "Active"}]},
    ).json()
    assert trackers["bast_need_create"] == 1
    assert trackers["active_pic"] == 1

    assert client.post("/api/summary/unknown", json={"records": []}).status_code == 404
    assert client.post("/api/summary/modules", json={"records": "nope"}).status_code == 400


def test_export_xlsx_and_csv(client):
    _create(client, "cctv_data", {"site_name": "Bekasi Hub", "regional": "Jabo Outer 2", "status": "online"})

    response = client.get("/api/tables/cctv_data/export", params={"format": "xlsx"})
    assert response.status_code == 200
    assert 'filename="cctv_data.xlsx"' in response.headers["content-disposition"]
    workbook = load_workbook(BytesIO(response.content))
    sheet = workbook["Data"]
    header = [cell.value for cell in sheet[1]]
    assert header[:4] == ["id", "site_id_display", "site_name", "regional"]
    assert "created_at" in header
    row = [cell.value for cell in sheet[2]]
    assert row[header.index("site_name")] == "Bekasi Hub"
    assert sheet.column_dimensions["C"].width == len("Bekasi Hub") + 2

    csv_response = client.get("/api/tables/cctv_data/export", params={"format": "csv"})
    assert csv_response.status_code == 200
    lines = csv_response.text.strip().splitlines()
    assert lines[0].startswith("id,site_id_display,site_name")
    assert "Bekasi Hub" in lines[1]

    assert client.get("/api/tables/cctv_data/export", params={"format": "pdf"}).status_code == 400


def test_module_import_creates_records(client, tmp_path):
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["SITE ID", "SITE NAME", "KAB/KOTA", "MITRA", "MODULE QTY", "Install Qty", "GAP", "RFS STATUS", "Extra"])
    sheet.append(["JKT-001", "Kemang", "Jakarta Selatan", "PT Satu", 4, 4, 0, "Done", "x"])
    sheet.append(["JKT-002", "Cilandak", "Jakarta Selatan", "PT Dua", 3, 1, 2, "Open", "y"])
    sheet.append([None, "No id", "Bogor", "PT Dua", 1, 0, 1, "Open", "z"])
    path = tmp_path / "modules.xlsx"
    workbook.save(path)

    with path.open("rb") as fp:
        response = client.post(
            "/api/tables/module_tracker/import",
            files={"file": ("modules.xlsx", fp, "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")},
        )
    assert response.status_code == 200, response.text
    assert response.json() == {"imported": 2, "skipped": 1, "unmapped_columns": ["Extra"]}

    summary = client.get("/api/summary/modules").json()
    assert summary["total"] == 2
    assert summary["done"] == 1
    assert summary["total_gap"] == "2"
    assert summary["total_module_qty"] == "7"
    assert [group["key"] for group in summary["by_partner"]] == ["PT Satu", "PT Dua"]


def test_module_import_rejects_unknown_file_type(client, tmp_path):
    path = tmp_path / "modules.txt"
    path.write_text("SITE ID\nX\n", encoding="utf-8")
    with path.open("rb") as fp:
        response = client.post("/api/tables/module_tracker/import", files={"file": ("modules.txt", fp, "text/plain")})
    assert response.status_code == 400


def test_activity_log_records_mutations(client):
    created = _create(client, "car_data", {"nomor_polisi": "B 9 ZZ"})
    client.put(f"/api/tables/car_data/records/{created['id']}", json={"condition": "NEED SERVICE"})
    client.delete(f"/api/tables/car_data/records/{created['id']}")

    items = client.get("/api/activity", params={"limit": 2}).json()["items"]
    assert [item["action"] for item in items] == ["delete", "update"]
    assert items[0]["record_id"] == created["id"]
    assert items[0]["summary"] == "B 9 ZZ"


def test_mutations_are_mirrored_for_synced_tables(client):
    recorder = RecordingSyncClient()
    configure_sheets_client(recorder)

    pic = _create(client, "pic_data", {"nama_pic": "Budi", "validasi": "Active"})
    client.put(f"/api/tables/pic_data/records/{pic['id']}", json={"validasi": "Inactive"})
    client.delete(f"/api/tables/pic_data/records/{pic['id']}")
    _create(client, "car_data", {"nomor_polisi": "B 1 AA"})

    assert [(call["action"], call["table"]) for call in recorder.calls] == [
        ("insert", "pic_data"),
        ("update", "pic_data"),
        ("delete", "pic_data"),
    ]
    assert recorder.calls[0]["data"]["nama_pic"] == "Budi"
    assert recorder.calls[1]["data"]["validasi"] == "Inactive"
    assert recorder.calls[2]["data"] is None
    assert recorder.calls[2]["record_id"] == pic["id"]


def test_failed_mirror_push_does_not_fail_the_write(client):
    class FailingSyncClient:
        def push(self, action, table, data=None, record_id=None):
            return SyncResult(success=False, error="boom")

    configure_sheets_client(FailingSyncClient())

    created = _create(client, "work_trackers", {"site_name": "Depok"})
    assert get_record_service().get_record("work_trackers", created["id"])["site_name"] == "Depok"


def _post_module_workbook(client, tmp_path, rows: list[list]):
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["SITE ID", "MODULE QTY", "INSTALL QTY", "GAP"])
    for row in rows:
        sheet.append(row)
    path = tmp_path / "modules.xlsx"
    workbook.save(path)
    with path.open("rb") as fp:
        return client.post(
            "/api/tables/module_tracker/import",
            files={"file": ("modules.xlsx", fp, "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")},
        )


def test_module_import_accepts_over_installed_sites(client, tmp_path):
    response = _post_module_workbook(client, tmp_path, [["S1", 2, 2, 0], ["S2", 2, 3, -1]])

    assert response.status_code == 200, response.text
    assert response.json()["imported"] == 2
    assert client.get("/api/summary/modules").json()["total_gap"] == "-1"


def test_module_import_stores_nothing_when_a_row_is_invalid(client, tmp_path):
    response = _post_module_workbook(client, tmp_path, [["S1", 2, 2, 0], ["S2", -1, 0, 0]])

    assert response.status_code == 400
    assert response.json()["detail"].startswith("row 2:")
    assert client.get("/api/tables/module_tracker/records").json()["items"] == []
    assert client.get("/api/activity").json()["items"] == []


def test_bulk_update_applies_changes_to_every_record(client):
    ids = [_create(client, "module_tracker", {"site_id": f"M-{n}", "rfs_status": "Open"})["id"] for n in range(3)]

    response = client.post(
        "/api/tables/module_tracker/bulk-update",
        json={"ids": ids[:2], "changes": {"rfs_status": "Done", "doc_atp": "Done", "id": "ignored"}},
    )

    assert response.status_code == 200, response.text
    assert response.json()["updated"] == 2
    stored = {item["id"]: item for item in client.get("/api/tables/module_tracker/records").json()["items"]}
    assert [stored[record_id]["rfs_status"] for record_id in ids] == ["Done", "Done", "Open"]
    assert set(stored) == set(ids)
    summary = client.get("/api/summary/modules").json()
    assert (summary["done"], summary["with_atp"]) == (2, 2)


def test_bulk_update_is_all_or_nothing(client):
    first = _create(client, "pic_data", {"nama_pic": "Budi", "validasi": "Active"})
    second = _create(client, "pic_data", {"nama_pic": "Sari", "validasi": "Active"})

    missing = client.post(
        "/api/tables/pic_data/bulk-update",
        json={"ids": [first["id"], "nope"], "changes": {"validasi": "Inactive"}},
    )
    assert missing.status_code == 404

    invalid = client.post(
        "/api/tables/pic_data/bulk-update",
        json={"ids": [first["id"], second["id"]], "changes": {"nama_pic": ""}},
    )
    assert invalid.status_code == 400

    empty = client.post("/api/tables/pic_data/bulk-update", json={"ids": [first["id"]], "changes": {}})
    assert empty.status_code == 400

    rows = client.get("/api/tables/pic_data/records").json()["items"]
    assert sorted(row["validasi"] for row in rows) == ["Active", "Active"]
    assert sorted(row["nama_pic"] for row in rows) == ["Budi", "Sari"]


def test_bulk_delete(client):
    ids = [_create(client, "car_data", {"nomor_polisi": f"B {n} AA"})["id"] for n in range(3)]

    missing = client.post("/api/tables/car_data/bulk-delete", json={"ids": [ids[0], "nope"]})
    assert missing.status_code == 404
    assert len(client.get("/api/tables/car_data/records").json()["items"]) == 3

    response = client.post("/api/tables/car_data/bulk-delete", json={"ids": ids[:2]})
    assert response.status_code == 200
    assert response.json() == {"deleted": ids[:2]}
    assert [row["id"] for row in client.get("/api/tables/car_data/records").json()["items"]] == [ids[2]]

    assert client.post("/api/tables/car_data/bulk-delete", json={"ids": []}).status_code == 422
    assert client.post("/api/tables/unknown/bulk-delete", json={"ids": ["x"]}).status_code == 404


def test_approve_bast_marks_trackers_approved(client):
    ids = [
        _create(client, "work_trackers", {"site_name": f"Site {n}", "status_pekerjaan": "Close", "status_bast": "Waiting Approve"})["id"]
        for n in range(2)
    ]

    response = client.post(
        "/api/tables/work_trackers/approve-bast",
        json={"ids": ids, "approved_on": "2024-03-01"},
    )

    assert response.status_code == 200, response.text
    for item in response.json()["items"]:
        assert item["status_bast"] == "Approve"
        assert item["bast_approve_date"] == "2024-03-01"
    summary = client.get("/api/summary/work-trackers").json()
    assert (summary["bast_approved"], summary["bast_waiting"]) == (2, 0)


def test_alerts_endpoint(client):
    _create(client, "work_trackers", {"site_name": "Cibubur", "bast_submit_date": "2024-01-01"})
    _create(client, "car_data", {"nomor_polisi": "B 1234 XY", "masa_berlaku_stnk": "2024-02-01"})

    response = client.get("/api/summary/alerts", params={"today": "2024-01-20"})

    assert response.status_code == 200
    data = response.json()
    assert [item["type"] for item in data["items"]] == ["bast_deadline", "car_stnk_expiring"]
    assert data["items"][0]["overdue"] is True
    assert data["items"][0]["due"] == "2024-01-15"
    assert data["high_priority"] == 2

    narrow = client.get("/api/summary/alerts", params={"today": "2024-01-20", "car_expiry_days": 5}).json()
    assert [item["type"] for item in narrow["items"]] == ["bast_deadline"]


def test_regional_summary_narrows_pic_and_cctv(client):
    _create(client, "work_trackers", {"site_name": "A", "regional": "Jabo Outer 1", "status_pekerjaan": "Close"})
    _create(client, "pic_data", {"nama_pic": "Budi", "regional": "Jabo Outer 1", "validasi": "Active"})
    _create(client, "pic_data", {"nama_pic": "Sari", "regional": "Jabo Outer 2", "validasi": "Active"})
    _create(client, "cctv_data", {"site_name": "A", "regional": "Jabo Outer 2", "status": "online"})
    _create(client, "car_data", {"nomor_polisi": "B 1 AA", "status_mobil": "Active"})

    summary = client.get("/api/summary/work-trackers", params={"regional": "Jabo Outer 1"}).json()

    assert (summary["total"], summary["total_pic"], summary["active_pic"]) == (1, 1, 1)
    assert (summary["total_cctv"], summary["cctv_online"]) == (0, 0)
    # cars have no regional column and are always counted
    assert summary["total_cars"] == 1


def test_activity_log_keeps_only_the_newest_entries():
    repository = InMemoryRecordRepository(activity_limit=2)
    for n in range(3):
        repository.add_activity(ActivityEntry(action="insert", table="car_data", record_id=str(n), at="2024-01-01"))

    assert [entry["record_id"] for entry in repository.list_activity()] == ["2", "1"]


def test_api_handlers_are_plain_functions(client):
    # blocking work (spreadsheet push, pandas parsing) must stay off the event loop
    handlers = [route for route in client.app.routes if isinstance(route, APIRoute) and route.path.startswith("/api")]

    assert handlers
    assert not [route.path for route in handlers if inspect.iscoroutinefunction(route.endpoint)]
