"""
Tests for the domain catalog index.
"""

import pytest

from serptrack.matching import build_index

from conftest import make_domain


class TestBuildIndex:
    """Test build_index()."""

    def test_inactive_domains_excluded(self, index):
        assert "d-inactive" not in index.by_id
        assert "inactive.com" not in index.by_host
        assert len(index) == 6

    def test_host_map_groups_path_variants(self, index):
        ids = {item.id for item in index.by_host["shopee.co.id"]}
        assert ids == {"d-shop", "d-shop-mall"}

    def test_root_map(self, index):
        assert [item.id for item in index.by_root["example.org"]] == ["d-blog"]
        assert {item.id for item in index.by_root["example.com"]} == {"d-example", "d-example-shop"}

    def test_token_index(self, index):
        assert index.by_token["tokopedia"] == {"d-toko"}
        assert "d-shop" in index.by_token["shopee"]

    def test_no_short_tokens(self, index):
        assert all(len(token) >= 4 for token in index.by_token)

    def test_specificity_order(self, index):
        order = [item.id for item in index.by_specificity]
        assert order[0] == "d-blog"  # shop.example.org
        assert order.index("d-shop-mall") < order.index("d-shop")
        assert order.index("d-example-shop") < order.index("d-example")
        assert order.index("d-toko") < order.index("d-shop-mall")

    def test_unparseable_and_duplicate_entries_skipped(self):
        domains = [
            make_domain("a", "example.com"),
            make_domain("a", "other.com"),
            make_domain("b", "not a domain"),
        ]
        index = build_index(domains)
        assert len(index) == 1
        assert index.by_id["a"].host_key == "example.com"

    def test_index_is_read_only(self, index):
        with pytest.raises(TypeError):
            index.by_host["new.com"] = ()

    def test_domains_for_tokens(self, index):
        found = {item.id for item in index.domains_for_tokens({"tokopedia", "missing"})}
        assert found == {"d-toko"}

    def test_empty_catalog(self):
        index = build_index([])
        assert len(index) == 0
        assert index.by_specificity == ()
