from collections.abc import Generator
from typing import Any
from unittest import mock

import pytest
from elasticsearch import Elasticsearch

from index_migrator.exceptions import AliasUpdateError
from index_migrator.exceptions import IndexAlreadyExistsError
from index_migrator.exceptions import IndexCreationError
from index_migrator.exceptions import IndexDeletionError
from index_migrator.exceptions import SourceNotFoundError
from index_migrator.gateway import AliasBinding
from index_migrator.gateway import ElasticsearchGateway
from index_migrator.gateway import get_gateway_instance
from index_migrator.gateway import setup_gateway
from index_migrator.gateway import setup_gateway_from_conf


def _mock_es_response(response_body: Any, status: int = 200) -> tuple[mock.Mock, Any]:
    """Helper to create proper Elasticsearch response format."""
    meta = mock.Mock()
    meta.status = status
    meta.headers = {"x-elastic-product": "Elasticsearch"}
    return (meta, response_body)


def _mock_es_error(error_type: str, status: int) -> tuple[mock.Mock, Any]:
    return _mock_es_response(
        {
            "error": {
                "type": error_type,
                "reason": error_type,
                "root_cause": [{"type": error_type, "reason": error_type}],
            },
            "status": status,
        },
        status=status,
    )


def _requests(mock_transport: mock.Mock) -> list[tuple[str, str, Any]]:
    """Method, path without query string and body of each request sent."""
    return [
        (call.args[0], call.args[1].split("?")[0], call.kwargs.get("body"))
        for call in mock_transport.call_args_list
    ]


@pytest.fixture
def mock_transport() -> Generator[mock.Mock, None, None]:
    with mock.patch("elastic_transport.Transport.perform_request") as mock_perform:
        yield mock_perform


@pytest.fixture
def es_client(mock_transport: mock.Mock) -> Elasticsearch:
    client = Elasticsearch(["http://localhost:9200"])
    return client


@pytest.fixture
def es_gateway(es_client: Elasticsearch) -> ElasticsearchGateway:
    return ElasticsearchGateway(client=es_client)


def test_alias_exists_returns_true_for_alias(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_response(None)

    assert es_gateway.alias_exists("shop")

    assert _requests(mock_transport) == [("HEAD", "/_alias/shop", None)]


def test_alias_exists_returns_false_for_missing_alias(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_response(None, status=404)

    assert not es_gateway.alias_exists("products")


def test_get_alias_backing_indices_lists_indices(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_response(
        {
            "shop-20230101000000": {"aliases": {"shop": {}}},
            "shop-20230102000000": {"aliases": {"shop": {}}},
        }
    )

    indices = es_gateway.get_alias_backing_indices("shop")

    assert indices == ["shop-20230101000000", "shop-20230102000000"]
    assert _requests(mock_transport) == [("GET", "/_alias/shop", None)]


def test_get_alias_backing_indices_returns_empty_list_for_missing_alias(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_response(
        {"error": "alias [shop] missing", "status": 404}, status=404
    )

    assert es_gateway.get_alias_backing_indices("shop") == []


def test_get_settings_strips_generated_settings(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_response(
        {
            "shop-20230102000000": {
                "settings": {
                    "index.number_of_shards": "2",
                    "index.number_of_replicas": "1",
                    "index.uuid": "kVHxhzDfQOeXp5T-6mHlXw",
                    "index.creation_date": "1672617600000",
                    "index.provided_name": "shop-20230102000000",
                    "index.version.created": "8130099",
                    "index.routing.allocation.include._tier_preference": "data_content",
                }
            }
        }
    )

    settings = es_gateway.get_settings("shop-20230102000000")

    assert settings == {
        "index.number_of_shards": "2",
        "index.number_of_replicas": "1",
        "index.routing.allocation.include._tier_preference": "data_content",
    }
    assert _requests(mock_transport) == [
        ("GET", "/shop-20230102000000/_settings", None)
    ]


def test_get_settings_raises_for_missing_index(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_error("index_not_found_exception", 404)

    with pytest.raises(SourceNotFoundError):
        es_gateway.get_settings("missing")


def test_get_settings_raises_when_the_index_is_not_in_the_response(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_response(
        {"shop-20230102000000": {"settings": {"index.number_of_shards": "2"}}}
    )

    with pytest.raises(SourceNotFoundError):
        es_gateway.get_settings("<shop-{now/d}>")


def test_get_mappings_keys_typeless_mapping_by_doc_type(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mapping = {"properties": {"name": {"type": "text"}}}
    mock_transport.return_value = _mock_es_response(
        {"shop-20230102000000": {"mappings": mapping}}
    )

    assert es_gateway.get_mappings("shop-20230102000000") == {"_doc": mapping}
    assert _requests(mock_transport) == [
        ("GET", "/shop-20230102000000/_mapping", None)
    ]


def test_get_mappings_keeps_typed_mappings(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mappings = {
        "product": {"properties": {"name": {"type": "text"}}},
        "order": {"properties": {"total": {"type": "float"}}},
    }
    mock_transport.return_value = _mock_es_response(
        {"shop-20230102000000": {"mappings": mappings}}
    )

    assert es_gateway.get_mappings("shop-20230102000000") == mappings


def test_get_mappings_raises_for_missing_index(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_error("index_not_found_exception", 404)

    with pytest.raises(SourceNotFoundError):
        es_gateway.get_mappings("missing")


def test_get_mappings_raises_when_the_index_is_not_in_the_response(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_response(
        {"shop-20230102000000": {"mappings": {"properties": {}}}}
    )

    with pytest.raises(SourceNotFoundError):
        es_gateway.get_mappings("shop-*")


def test_create_index_sends_typeless_mapping(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_response({"acknowledged": True})

    es_gateway.create_index(
        "shop-20230103000000",
        {"index.number_of_shards": 1, "_meta.settings_identifier": "v2"},
        {"_doc": {"properties": {"name": {"type": "text"}}}},
    )

    assert _requests(mock_transport) == [
        (
            "PUT",
            "/shop-20230103000000",
            {
                "settings": {
                    "index.number_of_shards": 1,
                    "_meta.settings_identifier": "v2",
                },
                "mappings": {"properties": {"name": {"type": "text"}}},
            },
        )
    ]


def test_create_index_without_settings_and_mappings(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_response({"acknowledged": True})

    es_gateway.create_index("shop-20230103000000", None, {})

    method, path, body = _requests(mock_transport)[0]
    assert (method, path) == ("PUT", "/shop-20230103000000")
    assert not body


def test_create_index_raises_when_index_exists(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_error(
        "resource_already_exists_exception", 400
    )

    with pytest.raises(IndexAlreadyExistsError):
        es_gateway.create_index("products", None, {})


def test_create_index_raises_when_mapping_is_invalid(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_error("mapper_parsing_exception", 400)

    with pytest.raises(IndexCreationError) as excinfo:
        es_gateway.create_index("products", None, {"_doc": {"properties": 1}})

    assert not isinstance(excinfo.value, IndexAlreadyExistsError)


def test_update_aliases_sends_removes_then_adds_in_one_request(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_response({"acknowledged": True})

    es_gateway.update_aliases(
        [AliasBinding("shop-20230103000000", "shop")],
        [AliasBinding("shop-*", "shop")],
    )

    assert _requests(mock_transport) == [
        (
            "POST",
            "/_aliases",
            {
                "actions": [
                    {"remove": {"index": "shop-*", "alias": "shop"}},
                    {"add": {"index": "shop-20230103000000", "alias": "shop"}},
                ]
            },
        )
    ]


def test_update_aliases_does_nothing_without_actions(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    es_gateway.update_aliases([])

    assert mock_transport.mock_calls == []


def test_update_aliases_raises_when_rejected(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_error("aliases_not_found_exception", 404)

    with pytest.raises(AliasUpdateError):
        es_gateway.update_aliases([AliasBinding("shop-20230103000000", "shop")])


def test_delete_index_returns_true_when_deleted(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_response({"acknowledged": True})

    assert es_gateway.delete_index("shop-20230101000000")

    assert _requests(mock_transport) == [("DELETE", "/shop-20230101000000", None)]


def test_delete_index_ignores_missing_index(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_error("index_not_found_exception", 404)

    assert not es_gateway.delete_index("shop-20230101000000")


def test_delete_index_raises_on_other_errors(
    es_gateway: ElasticsearchGateway, mock_transport: mock.Mock
) -> None:
    mock_transport.return_value = _mock_es_error("security_exception", 403)

    with pytest.raises(IndexDeletionError):
        es_gateway.delete_index("shop-20230101000000")


def test_setup_gateway_shares_the_instance() -> None:
    gateway = setup_gateway("http://localhost:9200", timeout=5)

    assert isinstance(gateway, ElasticsearchGateway)
    assert get_gateway_instance() is gateway


def test_setup_gateway_from_conf() -> None:
    settings = mock.Mock(
        ELASTICSEARCH_SERVER="http://localhost:9200", ELASTICSEARCH_TIMEOUT=5
    )

    with mock.patch("index_migrator.gateway.setup_gateway") as mock_setup:
        setup_gateway_from_conf(settings)

    mock_setup.assert_called_once_with("http://localhost:9200", 5)
