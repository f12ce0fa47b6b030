import numpy as np

from recontrack.utils.identifiers import normalize_identifier_value, normalize_op_code, normalize_vin
from recontrack.utils.stores import StoreDirectory


def test_store_directory_resolves_codes_and_names():
    stores = StoreDirectory({"1": "ACF", "2": "LCF", "3": "CFMG"})
    assert stores.resolve("1") == "1"
    assert stores.resolve("1.0") == "1"
    assert stores.resolve("cfmg") == "3"
    assert stores.resolve("9") is None
    assert stores.resolve("") is None
    assert stores.name_for("2") == "LCF"
    assert stores.name_for(None) is None
    assert stores.codes == ["1", "2", "3"]
    assert stores.describe() == ["1=ACF", "2=LCF", "3=CFMG"]


def test_identifier_normalization():
    assert normalize_identifier_value(" RO1001 ") == "RO1001"
    assert normalize_identifier_value("100.0") == "100"
    assert normalize_identifier_value(np.int64(7)) == "7"
    assert normalize_identifier_value(float("nan")) is None
    assert normalize_op_code(" uci ") == "UCI"
    assert normalize_vin(" 1hgcm82633a004352 ") == "1HGCM82633A004352"
    assert normalize_vin("  ") is None
