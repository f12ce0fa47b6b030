import pytest

from recontrack.errors import UnrecognizedFileError
from recontrack.etl.classify import FileKind, classify_or_raise, detect_file_kind


@pytest.mark.parametrize(
    "name,kind",
    [
        ("inventory_2023.csv", FileKind.INVENTORY),
        ("INVENTORY_service_open.csv", FileKind.INVENTORY),
        ("servicesalesclosed_1.csv", FileKind.RO_CLOSED),
        ("servicesalesdetailsclosed_1.csv", FileKind.RO_CLOSED_DETAILS),
        ("servicesalesopen_1.csv", FileKind.RO_OPEN),
        ("servicesalesdetailsopen_1.csv", FileKind.RO_OPEN_DETAILS),
        ("ServiceSalesDetailsOpen.CSV", FileKind.RO_OPEN_DETAILS),
    ],
)
def test_detect_file_kind(name, kind):
    assert detect_file_kind(name) is kind


def test_unrecognized_names():
    assert detect_file_kind("random_export.csv") is None
    # open/closed alone without a service marker is not enough
    assert detect_file_kind("closed_deals.csv") is None
    assert detect_file_kind("service_notes.csv") is None
    with pytest.raises(UnrecognizedFileError, match="Unknown file type: random_export.csv"):
        classify_or_raise("/tmp/in/random_export.csv")


def test_kind_predicates():
    assert FileKind.RO_OPEN_DETAILS.is_details and FileKind.RO_OPEN_DETAILS.is_open
    assert FileKind.RO_CLOSED.is_repair_order and not FileKind.RO_CLOSED.is_open
    assert not FileKind.INVENTORY.is_details
