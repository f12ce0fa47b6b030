import pytest

from recontrack.etl.uploads import safe_upload_name, stage_uploads


def test_stage_uploads_keeps_original_name(tmp_path, write_csv):
    src = write_csv(tmp_path / "tmp", "servicesalesopen_0101.csv", "ronumber,vin\n")
    staged = stage_uploads([src], tmp_path / "incoming")
    assert [p.name for p in staged] == ["servicesalesopen_0101.csv"]
    assert staged[0].read_text() == "ronumber,vin\n"


def test_stage_uploads_with_client_names(tmp_path, write_csv):
    spooled = write_csv(tmp_path / "tmp", "upload-3f2a", "x\n")
    staged = stage_uploads([spooled], tmp_path / "incoming", names=["../../etc/inventory.csv"])
    assert staged[0] == tmp_path / "incoming" / "inventory.csv"


def test_safe_upload_name_strips_directories():
    assert safe_upload_name("C:\\exports\\inventory.csv") == "inventory.csv"
    assert safe_upload_name("a/b/inventory.csv") == "inventory.csv"
    with pytest.raises(ValueError):
        safe_upload_name("../")


def test_empty_upload_rejected(tmp_path):
    with pytest.raises(ValueError, match="No files uploaded"):
        stage_uploads([], tmp_path)
