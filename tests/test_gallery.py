"""Tests for the request/response adapters in cloudgallery.gallery."""

import base64
from concurrent.futures import ThreadPoolExecutor

import pytest

from cloudgallery import gallery
from cloudgallery.cloud.lifecycle import TokenState
from cloudgallery.cloud.manager import IndexOutOfRange, UnsupportedProviderType
from cloudgallery.cloud.provider import TokenExpiredError


class TestAddProvider:
    def test_adds_and_stores_keys(self, manager, store):
        result = gallery.add_provider(manager, {
            "providerType": "Dropbox",
            "credentials": {"appKey": "k", "appSecret": "s"},
        })
        assert result == {
            "message": "Provider added successfully",
            "providerType": "dropbox",
            "instanceIndex": 0,
        }
        assert store.get_value("DROPBOX_APP_KEY_0") == "k"
        assert store.get_value("DROPBOX_APP_SECRET_0") == "s"
        assert not store.has_key("DROPBOX_ACCESS_TOKEN_0")

    def test_second_account_gets_next_index(self, manager):
        body = {"providerType": "dropbox", "credentials": {"appKey": "k", "appSecret": "s"}}
        gallery.add_provider(manager, body)
        assert gallery.add_provider(manager, body)["instanceIndex"] == 1

    def test_parallel_adds_report_their_own_index(self, manager, store):
        def add(n):
            body = {"providerType": "dropbox", "credentials": {"appKey": f"k{n}", "appSecret": "s"}}
            return n, gallery.add_provider(manager, body)["instanceIndex"]

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(add, range(6)))

        assert sorted(index for _, index in results) == list(range(6))
        for n, index in results:
            assert store.get_value(f"DROPBOX_APP_KEY_{index}") == f"k{n}"

    def test_full_credentials_sync_immediately(self, manager, fake_provider_cls, thumbnails):
        fake_provider_cls.listings = {"k": [("x.jpg", 1)]}
        gallery.add_provider(manager, {
            "providerType": "dropbox",
            "credentials": {"appKey": "k", "appSecret": "s", "accessToken": "a", "refreshToken": "r"},
        })
        assert len(thumbnails) == 1

    @pytest.mark.parametrize("body", [
        {},
        {"providerType": "dropbox"},
        {"providerType": "dropbox", "credentials": {"appKey": "k"}},
        {"credentials": {"appKey": "k", "appSecret": "s"}},
    ])
    def test_missing_fields(self, manager, body):
        with pytest.raises(gallery.RequestError):
            gallery.add_provider(manager, body)

    def test_unsupported_type(self, manager):
        with pytest.raises(UnsupportedProviderType):
            gallery.add_provider(manager, {"providerType": "box", "credentials": {"appKey": "k", "appSecret": "s"}})


class TestRemoveProvider:
    def test_removes(self, manager, seed):
        seed("a", "b")
        manager.initialize()
        result = gallery.remove_provider(manager, {"providerType": "dropbox", "instanceIndex": "0"})
        assert result["instanceIndex"] == 0
        assert manager.instance_count("dropbox") == 1

    @pytest.mark.parametrize("index", ["x", -1, "1.5"])
    def test_bad_index(self, manager, index):
        with pytest.raises(gallery.RequestError):
            gallery.remove_provider(manager, {"providerType": "dropbox", "instanceIndex": index})

    def test_missing_index(self, manager):
        with pytest.raises(gallery.RequestError):
            gallery.remove_provider(manager, {"providerType": "dropbox"})

    def test_out_of_range(self, manager, seed):
        seed("a")
        manager.initialize()
        with pytest.raises(IndexOutOfRange):
            gallery.remove_provider(manager, {"providerType": "dropbox", "instanceIndex": 4})


class TestListProviders:
    def test_lists_account_info(self, manager, seed):
        seed("a")
        manager.add_provider("dropbox")
        manager.add_provider("dropbox")
        rows = gallery.list_providers(manager)
        assert rows[0]["accountInfo"]["email"] == "a@example.com"
        assert rows[0]["tokenState"] == "authenticated"
        assert rows[1] == {
            "type": "dropbox",
            "instanceIndex": 1,
            "authenticated": False,
            "tokenState": "unconfigured",
        }

    def test_rejected_token_marks_expired(self, manager, seed):
        seed("a")
        manager.initialize()
        provider = manager.get_provider("dropbox", 0)
        provider.account_error = TokenExpiredError("expired")
        rows = gallery.list_providers(manager)
        assert rows[0]["authenticated"] is False
        assert "accountInfo" not in rows[0]
        assert provider.lifecycle.state is TokenState.TOKEN_EXPIRED


class TestGetThumbnails:
    @pytest.fixture
    def loaded(self, manager, seed, fake_provider_cls):
        fake_provider_cls.listings = {
            "a": [("old.jpg", 1), ("missing.jpg", 3)],
            "b": [("new.jpg", 5)],
        }
        seed("a", "b")
        manager.initialize()
        return manager

    def test_page_newest_first_with_data(self, loaded, thumbnails):
        page = gallery.get_thumbnails(loaded, thumbnails, "0", "2")
        assert [item["name"] for item in page] == ["new.jpg", "missing.jpg"]
        assert base64.b64decode(page[0]["data"]) == b"jpeg/new.jpg"
        assert page[0]["mimeType"] == "image/jpeg"
        assert page[0]["instanceIndex"] == 1
        assert page[1]["error"] == "File not found"
        assert "data" not in page[1]

    def test_past_the_end(self, loaded, thumbnails):
        assert gallery.get_thumbnails(loaded, thumbnails, 10, 5) == []

    def test_stale_instance_reports_error(self, loaded, thumbnails):
        loaded.providers["dropbox"][1] = None
        page = gallery.get_thumbnails(loaded, thumbnails, 0, 1)
        assert "does not exist" in page[0]["error"]

    def test_invalid_paging_values(self, loaded, thumbnails):
        with pytest.raises(gallery.RequestError):
            gallery.get_thumbnails(loaded, thumbnails, "abc", 10)

    def test_has_more(self):
        assert gallery.has_more([1, 2], 2)
        assert not gallery.has_more([1], 2)

    def test_record_to_dict(self, loaded, thumbnails):
        item = gallery.record_to_dict(thumbnails.records[0])
        assert item["date_taken"] == "2024-01-02T12:00:00"
        assert item["providerType"] == "dropbox"
