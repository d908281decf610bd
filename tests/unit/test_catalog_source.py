"""
Unit tests for the catalog source readers.

Run: pytest tests/unit/test_catalog_source.py -v
"""

import json

import pytest
import requests
from unittest.mock import MagicMock

from catalog_source import CatalogSource, HttpCatalogSource, JsonCatalogSource
from errors import SourceError
from models import BatchFilter


def write_catalog(tmp_path, data):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestJsonCatalogSource:
    """Tests for JsonCatalogSource"""

    def test_reads_plain_list_sorted_by_id(self, tmp_path):
        path = write_catalog(tmp_path, [{"id": 3}, {"id": 1}, {"id": 2}])

        source = JsonCatalogSource(path)

        assert [r.id for r in source.page_filtered(10, 0, BatchFilter())] == [1, 2, 3]

    def test_brand_filter_and_paging(self, tmp_path):
        # Arrange
        rows = [{"id": i, "brand_id": 1 if i % 2 else 2} for i in range(1, 9)]
        source = JsonCatalogSource(write_catalog(tmp_path, {"products": rows}))
        filter_ = BatchFilter(brand_id=1)

        # Act / Assert
        assert source.count_filtered(filter_) == 4
        assert [r.id for r in source.page_filtered(2, 1, filter_)] == [3, 5]

    def test_by_ids_skips_unknown(self, tmp_path):
        source = JsonCatalogSource(write_catalog(tmp_path, [{"id": 1}, {"id": 2}]))

        assert [r.id for r in source.by_ids([2, 42])] == [2]

    def test_source_field_aliases_are_accepted(self, tmp_path):
        """Export field names (link_rewrite, id_attribute) map onto the model."""
        # Arrange
        row = {
            "id": 5,
            "texts": {"it": {"name": "Sedia", "link_rewrite": "sedia"}},
            "variants": [{"sku": "S-1", "options": [
                {"name": "Colore", "value": "Rosso", "meta": {"id_attribute": 12, "is_color_group": True}},
            ]}],
        }

        # Act
        record = JsonCatalogSource(write_catalog(tmp_path, [row])).by_ids([5])[0]

        # Assert
        assert record.texts["it"].slug == "sedia"
        assert record.variants[0].options[0].meta.value_id == 12
        assert record.variants[0].options[0].meta.is_color is True

    def test_invalid_rows_raise_source_error(self, tmp_path):
        source = JsonCatalogSource(write_catalog(tmp_path, [{"id": "not-a-number"}]))

        with pytest.raises(SourceError):
            source.count_filtered(BatchFilter())

    def test_missing_file_raises_source_error(self, tmp_path):
        source = JsonCatalogSource(str(tmp_path / "nope.json"))

        with pytest.raises(SourceError):
            source.by_ids([1])


class TestHttpCatalogSource:
    """Tests for HttpCatalogSource with a mocked session"""

    def make_source(self, payload):
        source = HttpCatalogSource("https://pim.example.com/api/", "secret")
        response = MagicMock()
        response.json.return_value = payload
        source.session = MagicMock()
        source.session.get.return_value = response
        return source

    def test_page_passes_limit_offset_and_brand(self):
        # Arrange
        source = self.make_source({"products": [{"id": 7}]})

        # Act
        records = source.page_filtered(5, 10, BatchFilter(brand_id=3))

        # Assert
        assert [r.id for r in records] == [7]
        url = source.session.get.call_args.args[0]
        params = source.session.get.call_args.kwargs["params"]
        assert url == "https://pim.example.com/api/products"
        assert params == {"limit": 5, "offset": 10, "brand_id": 3}

    def test_count(self):
        source = self.make_source({"count": 12})

        assert source.count_filtered(BatchFilter()) == 12

    def test_by_ids_joins_ids(self):
        source = self.make_source({"products": []})

        source.by_ids([1, 2, 3])

        assert source.session.get.call_args.kwargs["params"] == {"ids": "1,2,3"}

    def test_http_failure_maps_to_source_error(self):
        source = self.make_source({})
        source.session.get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(SourceError):
            source.count_filtered(BatchFilter())

    def test_bearer_token_header(self):
        source = HttpCatalogSource("https://pim.example.com", "secret")

        assert source.session.headers["Authorization"] == "Bearer secret"


class TestCatalogSourceContract:
    """Tests for the CatalogSource base class"""

    def test_partial_reader_cannot_be_instantiated(self):
        """A reader missing page_filtered/by_ids should fail at construction, not mid-run."""
        class CountOnly(CatalogSource):
            def count_filtered(self, filter_):
                return 0

        with pytest.raises(TypeError):
            CountOnly()

    def test_base_class_is_abstract(self):
        with pytest.raises(TypeError):
            CatalogSource()
