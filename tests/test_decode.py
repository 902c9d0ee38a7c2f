import gzip

import pytest

from conftest import gzip_lines, square_feature
from spatialvault.decode import (
    CountryCatalog,
    decode_gzip_ndjson,
    parse_manifest,
    parse_page,
)
from spatialvault.errors import DecodeError


def test_parse_page_reads_count_and_data():
    body = {
        "status": 200,
        "success": True,
        "last_update": 12,
        "count": 2,
        "data": [{"a": 1}, {"a": 2}],
        "filename": "acled",
    }
    page = parse_page(body)
    assert page.count == 2
    assert page.data == [{"a": 1}, {"a": 2}]
    assert not page.exhausted


def test_zero_count_is_exhausted_even_without_data():
    assert parse_page({"count": 0}).exhausted


@pytest.mark.parametrize(
    "body",
    [[], {"data": []}, {"count": "3", "data": []}, {"count": 1}, {"count": 1, "data": [1]}],
)
def test_parse_page_rejects_malformed_bodies(body):
    with pytest.raises(DecodeError):
        parse_page(body)


def test_decode_gzip_ndjson_extracts_geometries_and_skips_blank_lines():
    payload = gzip.compress(
        (
            '{"type": "Feature", "geometry": {"type": "Polygon", "coordinates": [[[0, 0]]]}}\n'
            "\n"
            '{"type": "Feature", "geometry": {"type": "Point", "coordinates": [1, 2]}}\n'
        ).encode()
    )
    geometries = decode_gzip_ndjson(payload)
    assert [g["type"] for g in geometries] == ["Polygon", "Point"]


def test_decode_gzip_ndjson_round_trips_features():
    features = [square_feature(0), square_feature(3)]
    assert decode_gzip_ndjson(gzip_lines(features)) == [f["geometry"] for f in features]


def test_decode_gzip_ndjson_rejects_plain_bytes():
    with pytest.raises(DecodeError, match="gzip"):
        decode_gzip_ndjson(b"not gzip at all")


def test_decode_gzip_ndjson_rejects_bad_json_line():
    with pytest.raises(DecodeError, match="line 2"):
        decode_gzip_ndjson(gzip.compress(b'{"geometry": {}}\n{broken\n'))


def test_decode_gzip_ndjson_requires_geometry():
    with pytest.raises(DecodeError, match="Missing geometry"):
        decode_gzip_ndjson(gzip.compress(b'{"type": "Feature"}\n'))


def test_list_countries_is_deduplicated_and_sorted():
    catalog = CountryCatalog([("B", "u1"), ("A", "u2"), ("B", "u3")])
    assert catalog.list_countries() == ["A", "B"]
    assert catalog.urls_for("B") == ["u1", "u3"]
    assert catalog.urls_for("C") == []


def test_parse_manifest_ignores_extra_columns():
    text = (
        "Location,QuadKey,Url,Size,UploadDate\n"
        "Sudan,122,https://x/sudan-1.csv.gz,1MB,2023-04-01\n"
        "Chad,123,https://x/chad-1.csv.gz,2MB,2023-04-01\n"
        "Sudan,124,https://x/sudan-2.csv.gz,1MB,2023-04-01\n"
    )
    catalog = parse_manifest(text)
    assert len(catalog) == 3
    assert catalog.list_countries() == ["Chad", "Sudan"]
    assert catalog.urls_for("Sudan") == ["https://x/sudan-1.csv.gz", "https://x/sudan-2.csv.gz"]


def test_parse_manifest_requires_location_and_url():
    with pytest.raises(DecodeError, match="Url"):
        parse_manifest("Location,Link\nSudan,https://x\n")


def test_parse_manifest_rejects_empty_text():
    with pytest.raises(DecodeError):
        parse_manifest("")
