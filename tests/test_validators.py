import pytest

from crypto_proxy.utils.request_parsing import ProxyRequest
from crypto_proxy.utils.validators import validate_proxy_request

CURRENCIES = ("usd", "eur", "btc", "eth")


def _req(path, **params):
    return ProxyRequest(method="GET", path=path, query=list(params.items()))


def test_markets_requires_vs_currency():
    result = validate_proxy_request(_req("coins/markets"), CURRENCIES)
    assert result.ok is False
    assert result.reason == "Missing parameter vs_currency"


def test_markets_with_allowed_currency():
    assert validate_proxy_request(_req("coins/markets", vs_currency="usd"), CURRENCIES).ok is True
    assert validate_proxy_request(_req("coins/markets", vs_currency="EUR"), CURRENCIES).ok is True


def test_unknown_currency_rejected_on_any_path():
    result = validate_proxy_request(_req("coins/markets", vs_currency="xyz"), CURRENCIES)
    assert result.reason == "Invalid vs_currency value"
    assert validate_proxy_request(_req("simple/price", ids="bitcoin", vs_currency="xyz"), CURRENCIES).ok is False


def test_absent_optional_parameters_are_valid():
    assert validate_proxy_request(_req("coins/bitcoin"), CURRENCIES).ok is True
    assert validate_proxy_request(_req("search/trending"), CURRENCIES).ok is True


@pytest.mark.parametrize(
    "params",
    [
        {"page": "0"},
        {"page": "abc"},
        {"per_page": "0"},
        {"per_page": "101"},
        {"days": "0"},
        {"days": "366"},
        {"days": "1.5"},
    ],
)
def test_out_of_range_values_rejected(params):
    result = validate_proxy_request(_req("coins/bitcoin/market_chart", vs_currency="usd", **params), CURRENCIES)
    assert result.ok is False
    assert list(params)[0] in result.reason


@pytest.mark.parametrize(
    "params",
    [
        {"page": "1"},
        {"page": "250"},
        {"per_page": "1"},
        {"per_page": "100"},
        {"days": "1"},
        {"days": "365"},
        {"days": "max"},
    ],
)
def test_in_range_values_accepted(params):
    assert validate_proxy_request(_req("coins/bitcoin/market_chart", vs_currency="usd", **params), CURRENCIES).ok is True


def test_dot_segments_rejected():
    assert validate_proxy_request(_req("coins/../../admin"), CURRENCIES).ok is False


@pytest.mark.parametrize(
    "query",
    [
        [("vs_currency", "usd"), ("vs_currency", "xyz")],
        [("vs_currency", "usd"), ("per_page", "5"), ("per_page", "5000")],
        [("vs_currency", "usd"), ("page", "2"), ("page", "0")],
        [("vs_currency", "usd"), ("days", "max"), ("days", "400")],
    ],
)
def test_repeated_parameters_are_all_checked(query):
    request = ProxyRequest(method="GET", path="coins/markets", query=query)
    assert validate_proxy_request(request, CURRENCIES).ok is False


def test_repeated_valid_parameters_accepted():
    request = ProxyRequest(method="GET", path="coins/markets", query=[("vs_currency", "usd"), ("vs_currency", "EUR")])
    assert validate_proxy_request(request, CURRENCIES).ok is True


@pytest.mark.parametrize("value", ["1_000", "+5", "-1", " ", "٣", "５"])
def test_only_plain_ascii_digits_accepted(value):
    result = validate_proxy_request(_req("coins/markets", vs_currency="usd", per_page=value), CURRENCIES)
    assert result.ok is False
    assert "per_page" in result.reason
