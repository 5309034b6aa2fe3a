import pytest

from assertoor.consensus.clienttype import ClientType, detect_client_type, parse_client_type


@pytest.mark.parametrize(
    "name, expected",
    [
        ("lighthouse", ClientType.LIGHTHOUSE),
        ("lodestar", ClientType.LODESTAR),
        ("nimbus", ClientType.NIMBUS),
        ("prysm", ClientType.PRYSM),
        ("teku", ClientType.TEKU),
        ("grandine", ClientType.GRANDINE),
        ("geth", ClientType.UNKNOWN),
        ("Lighthouse", ClientType.UNKNOWN),
    ],
)
def test_parse_client_type(name, expected):
    assert parse_client_type(name) is expected


@pytest.mark.parametrize(
    "version, expected",
    [
        ("Lighthouse/v4.5.0-441fc16/x86_64-linux", ClientType.LIGHTHOUSE),
        ("lodestar/v1.12.0", ClientType.LODESTAR),
        ("Nimbus/v23.10.0", ClientType.NIMBUS),
        ("Prysm/v4.1.1", ClientType.PRYSM),
        ("teku/v23.10.0", ClientType.TEKU),
        ("GRANDINE/0.3.0", ClientType.GRANDINE),
        ("Geth/v1.13.8", ClientType.UNKNOWN),
        ("xLighthouse/v1", ClientType.UNKNOWN),
    ],
)
def test_detect_client_type(version, expected):
    assert detect_client_type(version) is expected


def test_str_round_trips_through_parse():
    for client_type in ClientType:
        if client_type in (ClientType.UNKNOWN, ClientType.UNSPECIFIED):
            continue
        assert parse_client_type(str(client_type)) is client_type


def test_str_of_unnamed_types():
    assert str(detect_client_type("Geth/v1.13.8")) == "unknown: -1"
    assert str(ClientType(0)) == "unknown: 0"