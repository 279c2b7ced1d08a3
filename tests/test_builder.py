"""Credential constraint builder and request descriptor."""

from __future__ import annotations

from datetime import date
from urllib.parse import parse_qs, urlparse

import pytest

from zkpassport_sdk.config import ConfigurationError
from zkpassport_sdk.constants import SANCTIONED_COUNTRIES
from zkpassport_sdk.credentials import CredentialConfig, CredentialTypeError, decode_config
from zkpassport_sdk.events import EventKind
from zkpassport_sdk.session import SessionNotFound


def _query(url: str) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(urlparse(url).query).items()}


def test_descriptor_url_carries_domain_topic_config_and_pubkey(client) -> None:
    builder = client.request(topic_override="abc456")
    descriptor = builder.eq("fullname", "John Doe").done()

    parsed = urlparse(descriptor.url)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == "https://zkpassport.id/r"
    query = _query(descriptor.url)
    assert query["d"] == "demo.zkpassport.id"
    assert query["t"] == "abc456"
    assert query["p"] == builder.session.key_pair.public_key.hex()
    assert decode_config(query["c"]) == {"fullname": {"eq": "John Doe"}}
    assert descriptor.request_id == "abc456"


def test_range_and_out_are_independent_constraints(client) -> None:
    descriptor = client.request().range("age", 18, 25).out("nationality", ["PRK"]).done()

    assert decode_config(_query(descriptor.url)["c"]) == {
        "age": {"range": [18, 25]},
        "nationality": {"out": ["PRK"]},
    }


def test_same_predicate_kind_last_write_wins(client) -> None:
    builder = client.request().gte("age", 18).gte("age", 21)

    assert builder.snapshot()["age"] == CredentialConfig(gte=21)


def test_predicate_kinds_accumulate_in_any_order(client) -> None:
    first = client.request().eq("age", 20).range("age", 18, 25).out("age", [19])
    second = client.request().out("age", [19]).eq("age", 20).range("age", 18, 25)

    assert first.snapshot()["age"] == second.snapshot()["age"]
    assert first.snapshot()["age"] == CredentialConfig(eq=20, out=(19,), range=(18, 25))
    assert _query(first.done().url)["c"] == _query(second.done().url)["c"]


def test_done_is_a_snapshot(client) -> None:
    builder = client.request().gte("age", 18)
    descriptor = builder.done()
    again = builder.done()

    builder.lt("age", 65).in_("nationality", ["FRA"])

    assert descriptor.url == again.url
    assert decode_config(_query(descriptor.url)["c"]) == {"age": {"gte": 18}}
    assert client.get_url(builder.topic) != descriptor.url


def test_inverted_range_is_rejected(client) -> None:
    builder = client.request()

    with pytest.raises(ConfigurationError):
        builder.range("age", 30, 18)
    assert builder.snapshot() == {}


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_numbers_are_rejected(client, bad: float) -> None:
    builder = client.request()

    with pytest.raises(ConfigurationError):
        builder.gte("age", bad)
    with pytest.raises(ConfigurationError):
        builder.range("age", bad, 25)
    with pytest.raises(ConfigurationError):
        builder.in_("age", [18, bad])
    assert builder.snapshot() == {}


def test_ordered_predicates_reject_string_credentials(client) -> None:
    builder = client.request()

    for method in (builder.gte, builder.gt, builder.lte, builder.lt):
        with pytest.raises(CredentialTypeError):
            method("nationality", "FRA")
    with pytest.raises(TypeError):
        builder.range("fullname", "A", "Z")


def test_values_must_match_credential_kind(client) -> None:
    builder = client.request()

    with pytest.raises(CredentialTypeError):
        builder.eq("age", "eighteen")
    with pytest.raises(CredentialTypeError):
        builder.gte("age", True)
    with pytest.raises(CredentialTypeError):
        builder.in_("nationality", "FRA")
    with pytest.raises(ConfigurationError):
        builder.eq("shoe_size", 42)


def test_date_credentials_serialize_as_iso_strings(client) -> None:
    descriptor = (
        client.request()
        .range("birthdate", date(1970, 1, 1), date(2000, 12, 31))
        .gt("expiry_date", date(2030, 6, 1))
        .done()
    )

    assert decode_config(_query(descriptor.url)["c"]) == {
        "birthdate": {"range": ["1970-01-01", "2000-12-31"]},
        "expiry_date": {"gt": "2030-06-01"},
    }


def test_check_aml_is_a_flag_not_a_predicate(client) -> None:
    descriptor = client.request().out("nationality", SANCTIONED_COUNTRIES).check_aml("FRA").done()

    assert descriptor.aml_check is True
    assert descriptor.aml_country == "FRA"
    assert decode_config(_query(descriptor.url)["c"]) == {"nationality": {"out": list(SANCTIONED_COUNTRIES)}}


def test_builder_after_cancel_raises(client) -> None:
    builder = client.request(topic_override="gone")
    client.cancel_request("gone")

    with pytest.raises(SessionNotFound):
        builder.eq("fullname", "John Doe")
    with pytest.raises(SessionNotFound):
        client.get_url("gone")


def test_subscriptions_work_as_decorators(client) -> None:
    descriptor = client.request().done()

    @descriptor.on_reject
    def handle_reject() -> None:
        pass

    assert callable(handle_reject)
    assert descriptor.dispatcher.has_callbacks(EventKind.REJECT)
