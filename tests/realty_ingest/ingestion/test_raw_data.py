"""
Tests for RawData payloads
"""
from pathlib import Path

import pytest

from src.realty_ingest.errors import PayloadTypeError
from src.realty_ingest.ingestion.raw_data import PayloadKind, RawData


class TestRawData:
    """Tests for the RawData accessors"""

    def test_file_payload(self):
        """FILE payloads unwrap to a Path"""
        raw = RawData.from_file("/tmp/sales.csv")
        assert raw.kind is PayloadKind.FILE
        assert raw.as_file_path() == Path("/tmp/sales.csv")

    def test_bytes_payload(self):
        """BYTES payloads unwrap to bytes"""
        assert RawData.from_bytes(b"PK\x03\x04").as_bytes() == b"PK\x03\x04"

    def test_json_payload(self):
        """JSON payloads unwrap to the decoded value"""
        assert RawData.from_json({"features": []}).as_json() == {"features": []}

    def test_csv_payload(self):
        """CSV payloads unwrap to text"""
        assert RawData.from_csv("a,b\n1,2\n").as_csv() == "a,b\n1,2\n"

    @pytest.mark.parametrize("raw,accessor", [
        (RawData.from_bytes(b"x"), "as_file_path"),
        (RawData.from_file("/tmp/x.csv"), "as_bytes"),
        (RawData.from_csv("a"), "as_json"),
        (RawData.from_json([]), "as_csv"),
    ])
    def test_wrong_variant_raises(self, raw, accessor):
        """Unwrapping the wrong kind raises PayloadTypeError"""
        with pytest.raises(PayloadTypeError):
            getattr(raw, accessor)()

    def test_payload_type_error_is_type_error(self):
        """PayloadTypeError can be caught as TypeError"""
        with pytest.raises(TypeError):
            RawData.from_bytes(b"x").as_json()

    def test_repr_hides_bytes(self):
        """repr reports size rather than dumping content"""
        assert repr(RawData.from_bytes(b"abc")) == "RawData(bytes, 3 bytes)"
