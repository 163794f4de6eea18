"""
Tests for the repository layer.
"""

import pytest
from datetime import datetime, timedelta

from serptrack.database import ActivityAction, Domain, get_db_context, repository
from serptrack.errors import BrandNotFoundError, DomainConflictError, InvalidDomainError


class TestDomains:
    """Domain registration, conflicts and soft deletes."""

    def test_derived_keys_stored(self, seeded):
        with get_db_context() as db:
            mall = db.get(Domain, seeded["shopee_mall"])
            assert mall.host_key == "shopee.co.id"
            assert mall.root_key == "shopee.co.id"
            assert mall.path_prefix == "/mall"
            assert "mall" in mall.tokens

    def test_stored_tokens_match_catalog_tokens(self, seeded):
        with get_db_context() as db:
            mall = db.get(Domain, seeded["shopee_mall"])
            # "shop" only comes from the brand code
            assert "shop" in mall.tokens
            assert set(mall.tokens) == set(repository.to_catalog_domain(mall).tokens)

    def test_tokens_follow_brand_changes(self, seeded):
        with get_db_context() as db:
            row = db.get(Domain, seeded["shopee_mall"])
            row.brand = repository.get_active_brand(db, seeded["TOKO"])
            assert "toko" in row.tokens
            assert "shop" not in row.tokens

    def test_derived_keys_follow_domain_changes(self, seeded):
        with get_db_context() as db:
            row = db.get(Domain, seeded["shopee_mall"])
            row.domain = "https://seller.shopee.co.id/"
            assert row.host_key == "seller.shopee.co.id"
            assert row.path_prefix == ""

    def test_find_active_domains(self, seeded):
        with get_db_context() as db:
            domains = repository.find_active_domains(db)

        hosts = sorted(f"{d.host_key}{d.path_prefix}" for d in domains)
        assert hosts == ["blibli.com", "shopee.co.id", "shopee.co.id/mall", "tokopedia.com"]

        toko = next(d for d in domains if d.host_key == "tokopedia.com")
        assert toko.brand_code == "TOKO"
        assert toko.brand_color == "#03ac0e"
        assert "toko" in toko.tokens

    def test_inactive_brand_domains_hidden(self, seeded):
        with get_db_context() as db:
            repository.get_active_brand(db, seeded["TOKO"]).is_active = False
        with get_db_context() as db:
            hosts = {d.host_key for d in repository.find_active_domains(db)}
        assert "tokopedia.com" not in hosts

    def test_conflict_across_brands(self, seeded):
        with get_db_context() as db:
            with pytest.raises(DomainConflictError) as exc_info:
                repository.add_domain(db, seeded["SHOP"], "https://www.tokopedia.com/")
        assert exc_info.value.status_code == 409

    def test_same_host_different_path_allowed(self, seeded):
        with get_db_context() as db:
            row = repository.add_domain(db, seeded["SHOP"], "tokopedia.com/shopee-store")
            assert row.path_prefix == "/shopee-store"

    def test_invalid_domain(self, seeded):
        with get_db_context() as db:
            with pytest.raises(InvalidDomainError):
                repository.add_domain(db, seeded["TOKO"], "   ")

    def test_unknown_brand(self, database):
        with get_db_context() as db:
            with pytest.raises(BrandNotFoundError):
                repository.add_domain(db, "missing", "example.com")

    def test_deactivated_domain_can_move_brands(self, seeded):
        with get_db_context() as db:
            moved = repository.add_domain(db, seeded["TOKO"], "blibli.net")
            assert moved.brand_id == seeded["TOKO"]

    def test_reactivation_reuses_row(self, seeded):
        with get_db_context() as db:
            row = repository.add_domain(db, seeded["BLIB"], "www.blibli.net", note="back")
            assert row.id == seeded["blibli_net"]
            assert row.is_active is True
            assert row.note == "back"

    def test_activity_logged(self, seeded):
        with get_db_context() as db:
            entries = repository.list_activity(db, limit=500)
        actions = [entry.action for entry in entries]
        assert actions.count(ActivityAction.ADD) == 5
        assert actions.count(ActivityAction.DELETE) == 1

    def test_deactivate_missing(self, database):
        with get_db_context() as db:
            assert repository.deactivate_domain(db, "missing") is None


class TestApiKeys:
    """Key ordering and usage counts."""

    def test_positions_increase(self, api_keys):
        with get_db_context() as db:
            key = repository.add_api_key(db, " Extra ", " secret-extra ")
            assert key.position == 4
            assert key.name == "Extra"
            assert key.secret_value == "secret-extra"

    def test_active_filter(self, api_keys):
        with get_db_context() as db:
            repository.set_api_key_active(db, api_keys[1], False)
        with get_db_context() as db:
            names = [key.name for key in repository.list_api_keys(db, active_only=True)]
        assert names == ["Key 1", "Key 3", "Key 4"]

    def test_usage_count_since(self, api_keys):
        now = datetime(2026, 3, 15)
        with get_db_context() as db:
            repository.record_key_usage(db, api_keys[0], now - timedelta(days=3), success=True)
            repository.record_key_usage(db, api_keys[0], now, success=False, status_code=429)
        with get_db_context() as db:
            assert repository.count_key_usage(db, api_keys[0]) == 2
            assert repository.count_key_usage(db, api_keys[0], since=now - timedelta(days=1)) == 1
            assert repository.count_key_usage(db, api_keys[1]) == 0


class TestRuns:
    """Run persistence."""

    def test_save_and_list(self, seeded):
        base = datetime(2026, 3, 1, 8, 0)
        with get_db_context() as db:
            for hours in (0, 2, 1):
                repository.save_run(db, {
                    "brand_id": seeded["TOKO"],
                    "query": "TOKO",
                    "checked_at": base + timedelta(hours=hours),
                    "own_count": hours,
                    "results": [{"rank": 1, "badge": "OWN"}],
                })

        with get_db_context() as db:
            runs = repository.list_runs_for_brand(db, seeded["TOKO"])
            recent = repository.list_runs_for_brand(db, seeded["TOKO"], since=base + timedelta(minutes=30))

        assert [run.own_count for run in runs] == [2, 1, 0]
        assert len(recent) == 2
        assert runs[0].results == [{"rank": 1, "badge": "OWN"}]


def test_activity_limit_clamped(seeded):
    with get_db_context() as db:
        assert len(repository.list_activity(db, limit=0)) == 1
        assert len(repository.list_activity(db, limit=2)) == 2
