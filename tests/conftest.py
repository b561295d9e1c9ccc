from __future__ import annotations

import sys
from unittest.mock import MagicMock
from urllib.parse import parse_qsl, urlsplit

import pytest

from mdfe.models.client_config import ClientConfig
from mdfe.models.response import TransportResult
from mdfe.services.manager_client import ManagerClient

PROD_ORIGIN = "https://managersaas.tecnospeed.com.br:8081/ManagerAPIWeb"
HOM_ORIGIN = "https://managersaashom.tecnospeed.com.br:7071/ManagerAPIWeb"


def query_pairs(url: str) -> list[tuple[str, str]]:
    """Decoded (name, value) pairs of a URL's query string, in order."""
    return parse_qsl(urlsplit(url).query, keep_blank_values=True)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep real env vars, .env files and the keyring out of the tests."""
    for var in (
        "MANAGER_CNPJ",
        "MANAGER_GRUPO",
        "MANAGER_TOKEN",
        "MANAGER_PRODUCTION",
        "MANAGER_UPLOAD",
        "MANAGER_DECODE",
        "MANAGER_DEBUG",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("MANAGER_MDFE_CONFIG_DIR", str(tmp_path / "config"))
    keyring = MagicMock()
    keyring.get_password.return_value = None
    monkeypatch.setitem(sys.modules, "keyring", keyring)


@pytest.fixture
def client_config() -> ClientConfig:
    return ClientConfig(
        cnpj="12345678000199",
        grupo="acme",
        token="dXNlcjpwYXNz",
        production=False,
    )


@pytest.fixture
def transport() -> MagicMock:
    mock = MagicMock()
    mock.execute.return_value = TransportResult(status_code=200, raw_body="OK,1234")
    return mock


@pytest.fixture
def manager(client_config, transport) -> ManagerClient:
    return ManagerClient(client_config, transport)


def sent_spec(transport: MagicMock):
    """The RequestSpec passed to the mocked transport on its last call."""
    return transport.execute.call_args[0][0]
