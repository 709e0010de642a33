import logging
import zipfile

import pytest

import generate_catalog
from conftest import make_image_bytes


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    yield
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


@pytest.fixture
def workspace(tmp_path):
    csv_path = tmp_path / "products.csv"
    csv_path.write_text(
        "sku,action,title,price,filename\n"
        "A1,add,Pack 10 lapices de colores,3500,a1.jpg\n"
        "B2,add,Cuaderno rayado,12900,b2.jpg\n"
        "C3,add,Borrador,500,\n",
        encoding="utf-8",
    )
    template = tmp_path / "template.png"
    template.write_bytes(make_image_bytes(size=(500, 500), color=(255, 255, 255)))
    photos = tmp_path / "photos"
    photos.mkdir()
    (photos / "a1.jpg").write_bytes(make_image_bytes(size=(200, 300), fmt="JPEG"))
    (photos / "b2.jpg").write_bytes(b"corrupt")
    return tmp_path


def _args(ws, *extra):
    return [
        "--csv", str(ws / "products.csv"),
        "--template", str(ws / "template.png"),
        "--photos", str(ws / "photos"),
        "--output", str(ws / "out"),
        *extra,
    ]


def test_batch_writes_cards_and_bundle(workspace):
    assert generate_catalog.main(_args(workspace)) == 0

    out = workspace / "out"
    assert sorted(p.name for p in (out / "cards").iterdir()) == ["A1.jpg", "C3.jpg"]
    assert (out / "run.log").exists()
    with zipfile.ZipFile(out / "catalog_images.zip") as zf:
        assert sorted(zf.namelist()) == ["A1.jpg", "C3.jpg", "results.csv"]
        report = zf.read("results.csv").decode("utf-8")
    assert "B2" in report
    assert "error: Cannot decode photo 'b2.jpg'" in report


def test_batch_with_rappi_flatfile(workspace):
    assert generate_catalog.main(_args(workspace, "--rappi")) == 0
    with zipfile.ZipFile(workspace / "out" / "catalogo_rappi.zip") as zf:
        assert "rappi_productos.xlsx" in zf.namelist()


def test_only_sku(workspace):
    assert generate_catalog.main(_args(workspace, "--only-sku", "C3")) == 0
    assert [p.name for p in (workspace / "out" / "cards").iterdir()] == ["C3.jpg"]


def test_only_sku_not_found(workspace):
    assert generate_catalog.main(_args(workspace, "--only-sku", "ZZ")) == 1


def test_missing_inputs_fail(workspace):
    (workspace / "template.png").unlink()
    assert generate_catalog.main(_args(workspace)) == 1

    args = _args(workspace)
    args[1] = str(workspace / "missing.csv")
    assert generate_catalog.main(args) == 1


def test_missing_photos_directory_composes_text_only(workspace):
    args = _args(workspace)
    args[5] = str(workspace / "no_photos")
    assert generate_catalog.main(args) == 0
    cards = sorted(p.name for p in (workspace / "out" / "cards").iterdir())
    assert cards == ["A1.jpg", "B2.jpg", "C3.jpg"]
