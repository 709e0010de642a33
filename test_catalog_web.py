import io
import zipfile

import pytest

from catalog_web import create_app
from processor import RecordProcessor
from records import Status

CSV_TEXT = (
    "sku,action,title,price,filename\n"
    "A1,add,Pack 10 lapices de colores,3500,a1.jpg\n"
    "B2,add,Cuaderno rayado,12900,b2.jpg\n"
)


@pytest.fixture
def processor():
    p = RecordProcessor(debounce_seconds=0.01)
    yield p
    p.shutdown()


@pytest.fixture
def client(processor):
    app = create_app(processor)
    app.config["TESTING"] = True
    return app.test_client()


def _upload_csv(client, text=CSV_TEXT):
    return client.post("/api/csv", data={"file": (io.BytesIO(text.encode("utf-8")), "products.csv")})


def _upload_template(client, data):
    return client.post("/api/template", data={"file": (io.BytesIO(data), "template.png")})


def test_index_page(client):
    res = client.get("/")
    assert res.status_code == 200
    assert b"<html" in res.data


def test_upload_csv_and_list_records(client):
    res = _upload_csv(client)
    assert res.status_code == 200
    assert res.get_json()["count"] == 2

    body = client.get("/api/records").get_json()
    assert body["count"] == 2
    assert body["has_template"] is False
    assert [r["sku"] for r in body["records"]] == ["A1", "B2"]
    assert body["records"][0]["status"] == "unset"


def test_upload_bad_csv(client):
    res = _upload_csv(client, "title,price\nLapiz,100\n")
    assert res.status_code == 400
    assert "sku" in res.get_json()["error"]


def test_missing_files_are_rejected(client):
    assert client.post("/api/csv", data={}).status_code == 400
    assert client.post("/api/template", data={}).status_code == 400
    assert client.post("/api/photos", data={}).status_code == 400


def test_bad_template_is_rejected(client):
    res = _upload_template(client, b"not an image")
    assert res.status_code == 400
    assert client.get("/api/records").get_json()["has_template"] is False


def test_compose_requires_records_and_template(client):
    assert client.post("/api/compose").status_code == 400
    _upload_csv(client)
    res = client.post("/api/compose")
    assert res.status_code == 400
    assert "template" in res.get_json()["error"].lower()


def test_full_flow(client, processor, template_bytes, photo_bytes):
    _upload_csv(client)
    assert _upload_template(client, template_bytes).status_code == 200
    res = client.post("/api/photos", data={"files": [(io.BytesIO(photo_bytes), "a1.jpg")]})
    assert res.get_json()["count"] == 1

    res = client.post("/api/compose")
    assert res.status_code == 200
    assert res.get_json() == {"success": True, "ok": 2, "failed": 0}

    image = client.get("/api/records/0/image")
    assert image.status_code == 200
    assert image.mimetype == "image/jpeg"
    assert image.data.startswith(b"\xff\xd8")

    res = client.post("/api/records/1/approved", json={"approved": False})
    assert res.get_json()["approved"] is False

    res = client.get("/api/download/zip")
    assert res.status_code == 200
    with zipfile.ZipFile(io.BytesIO(res.data)) as zf:
        assert sorted(zf.namelist()) == ["A1.jpg", "results.csv"]

    res = client.get("/api/download/zip?rappi=1")
    with zipfile.ZipFile(io.BytesIO(res.data)) as zf:
        assert "rappi_productos.xlsx" in zf.namelist()

    res = client.get("/api/download/rappi")
    assert res.status_code == 200
    assert res.data.startswith(b"PK")


def test_image_before_compose_is_404(client):
    _upload_csv(client)
    assert client.get("/api/records/0/image").status_code == 404
    assert client.get("/api/records/9/image").status_code == 404


def test_settings_update(client, processor):
    _upload_csv(client)
    res = client.post("/api/records/0/settings", json={"settings": {"photoY": 140, "fontSize": 20}})
    assert res.status_code == 200
    body = res.get_json()
    assert body["settings"]["photo_y"] == 140
    assert body["settings"]["font_size"] == 20
    # No template yet, so no automatic recomposition
    assert body["auto_update"] is False
    assert processor.record(0).settings.photo_y == 140


def test_settings_update_rejects_bad_values(client):
    _upload_csv(client)
    assert client.post("/api/records/0/settings", json={"settings": {"fontSize": 90}}).status_code == 400
    assert client.post("/api/records/0/settings", json={"settings": {"bogus": 1}}).status_code == 400
    assert client.post("/api/records/0/settings", json={"settings": [1, 2]}).status_code == 400
    assert client.post("/api/records/5/settings", json={"settings": {}}).status_code == 404


def test_settings_auto_update_recomposes(client, processor, template_bytes):
    _upload_csv(client)
    _upload_template(client, template_bytes)
    res = client.post("/api/records/0/settings", json={"settings": {"photoY": 120}, "auto_update": True})
    assert res.get_json()["auto_update"] is True
    assert processor.wait_idle(timeout=10)
    assert processor.record(0).status == Status.OK


def test_compose_one_and_conflict(client, processor, template_bytes):
    _upload_csv(client)
    _upload_template(client, template_bytes)
    res = client.post("/api/records/0/compose")
    assert res.status_code == 202
    assert processor.wait_idle(timeout=10)
    assert processor.record(0).status == Status.OK

    # Simulate a composition in flight
    processor.record(1).status = Status.PROCESSING
    assert client.post("/api/records/1/compose").status_code == 409
    assert client.post("/api/records/1/photo", json={"filename": "x.jpg"}).status_code == 409
    assert client.post("/api/records/7/compose").status_code == 404


def test_swap_photo_by_name_and_upload(client, processor, photo_bytes):
    _upload_csv(client)
    res = client.post("/api/records/0/photo", json={"filename": "otra.jpg"})
    assert res.status_code == 200
    assert processor.record(0).filename == "otra.jpg"
    assert processor.record(0).status == Status.PENDING

    res = client.post("/api/records/1/photo", data={"file": (io.BytesIO(photo_bytes), "nueva.jpg")})
    assert res.get_json()["filename"] == "nueva.jpg"
    assert processor.assets.get("nueva.jpg") == photo_bytes

    assert client.post("/api/records/0/photo", json={}).status_code == 400


def test_photo_uploads_without_filename_are_rejected(client, processor, photo_bytes):
    _upload_csv(client)
    res = client.post("/api/photos", data={"files": [(io.BytesIO(photo_bytes), "a1.jpg"), (io.BytesIO(b"x"), "")]})
    assert res.status_code == 400
    assert processor.assets.names() == []

    res = client.post("/api/records/0/photo", data={"file": (io.BytesIO(b"x"), "")})
    assert res.status_code == 400
    assert processor.record(0).filename == "a1.jpg"
    assert processor.record(0).status == Status.UNSET
