from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
import requests

from mdfe.models.response import RequestSpec
from mdfe.services.exceptions import TransportError
from mdfe.services.transport import HttpTransport, _fold_headers

_URL = "https://managersaashom.tecnospeed.com.br:7071/ManagerAPIWeb/mdfe/consulta?Grupo=g&CNPJ=1"


def _spec(method="GET", body=None, multipart=False, headers=None) -> RequestSpec:
    return RequestSpec(
        url=_URL,
        method=method,
        headers=tuple(
            headers
            or [("Authorization", "Basic tok"), ("Content-Type", "application/x-www-form-urlencoded")]
        ),
        body=body,
        multipart=multipart,
    )


def _mock_response(status_code: int = 200, text: str = "OK,1"):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    resp.url = _URL
    resp.elapsed = timedelta(milliseconds=250)
    resp.headers = {"Content-Type": "text/plain"}
    resp.request.headers = {"Authorization": "Basic tok"}
    return resp


@pytest.fixture
def session():
    with patch("mdfe.services.transport.requests.Session") as session_cls:
        sess = MagicMock()
        session_cls.return_value.__enter__.return_value = sess
        session_cls.return_value.__exit__.return_value = False
        sess.request.return_value = _mock_response()
        sess.session_cls = session_cls
        yield sess


class TestFoldHeaders:
    def test_plain(self):
        assert _fold_headers([("A", "1"), ("B", "2")], drop_content_type=False) == {"A": "1", "B": "2"}

    def test_repeated_names_joined(self):
        folded = _fold_headers([("Accept", "a"), ("accept", "b")], drop_content_type=False)
        assert folded == {"Accept": "a, b"}

    def test_multipart_drops_content_type(self):
        folded = _fold_headers(
            [("Authorization", "Basic t"), ("Content-Type", "multipart/form-data")],
            drop_content_type=True,
        )
        assert folded == {"Authorization": "Basic t"}


class TestExecute:
    def test_get(self, session):
        result = HttpTransport(timeout=5).execute(_spec())
        assert result.status_code == 200
        assert result.raw_body == "OK,1"
        args, kwargs = session.request.call_args
        assert args == ("GET", _URL)
        assert kwargs["timeout"] == 5
        assert kwargs["headers"]["Authorization"] == "Basic tok"
        assert "data" not in kwargs
        assert "files" not in kwargs

    def test_post_form(self, session):
        HttpTransport().execute(_spec("POST", body={"Arquivo": "x"}))
        _, kwargs = session.request.call_args
        assert kwargs["data"] == {"Arquivo": "x"}

    def test_post_multipart(self, session):
        spec = _spec(
            "POST",
            body={"emit[uf]": "SC", "n": 1},
            multipart=True,
            headers=[("Authorization", "Basic tok"), ("Content-Type", "multipart/form-data")],
        )
        HttpTransport().execute(spec)
        _, kwargs = session.request.call_args
        assert kwargs["files"] == {"emit[uf]": (None, "SC"), "n": (None, "1")}
        assert "Content-Type" not in kwargs["headers"]

    def test_diagnostics(self, session):
        result = HttpTransport().execute(_spec())
        info = result.diagnostics
        assert info["url"] == _URL
        assert info["method"] == "GET"
        assert info["http_code"] == 200
        assert info["total_time"] == 0.25
        assert info["content_type"] == "text/plain"

    def test_non_200_returned(self, session):
        session.request.return_value = _mock_response(500, '{"erro": "x"}')
        result = HttpTransport().execute(_spec())
        assert result.status_code == 500

    def test_connection_error_wrapped(self, session):
        cause = requests.exceptions.ConnectionError("refused")
        session.request.side_effect = cause
        with pytest.raises(TransportError, match="refused") as exc_info:
            HttpTransport().execute(_spec())
        assert exc_info.value.__cause__ is cause
        assert session.request.call_count == 1

    def test_timeout_wrapped(self, session):
        session.request.side_effect = requests.exceptions.ReadTimeout("read timed out")
        with pytest.raises(TransportError, match="timed out"):
            HttpTransport().execute(_spec())

    def test_session_closed_on_error(self, session):
        session.request.side_effect = requests.exceptions.ConnectionError("down")
        with pytest.raises(TransportError):
            HttpTransport().execute(_spec())
        session.session_cls.return_value.__exit__.assert_called_once()

    def test_session_closed_on_success(self, session):
        HttpTransport().execute(_spec())
        session.session_cls.return_value.__exit__.assert_called_once()


class TestSingleValuedHeaders:
    def test_content_type_last_wins(self):
        folded = _fold_headers(
            [
                ("Content-Type", "application/x-www-form-urlencoded"),
                ("content-type", "text/xml"),
            ],
            drop_content_type=False,
        )
        assert folded == {"Content-Type": "text/xml"}

    def test_authorization_last_wins(self):
        folded = _fold_headers(
            [("Authorization", "Basic a"), ("Authorization", "Bearer b")],
            drop_content_type=False,
        )
        assert folded == {"Authorization": "Bearer b"}

    def test_caller_content_type_sent_alone(self, session):
        spec = _spec(
            headers=[
                ("Authorization", "Basic tok"),
                ("Content-Type", "application/x-www-form-urlencoded"),
                ("Content-Type", "text/xml"),
            ]
        )
        HttpTransport().execute(spec)
        _, kwargs = session.request.call_args
        assert kwargs["headers"]["Content-Type"] == "text/xml"


class TestMultipartFields:
    _HEADERS = [("Authorization", "Basic tok"), ("Content-Type", "multipart/form-data")]

    def test_bytes_sent_untouched(self, session):
        spec = _spec("POST", body={"Anexo": b"\x00PDF"}, multipart=True, headers=self._HEADERS)
        HttpTransport().execute(spec)
        _, kwargs = session.request.call_args
        assert kwargs["files"] == {"Anexo": (None, b"\x00PDF")}

    def test_bytes_on_the_wire(self):
        spec = _spec("POST", body={"Anexo": b"\x00PDF"}, multipart=True, headers=self._HEADERS)
        kwargs = HttpTransport()._request_kwargs(spec)
        prepared = requests.Request("POST", _URL, headers=kwargs["headers"], files=kwargs["files"]).prepare()
        assert b'name="Anexo"\r\n\r\n\x00PDF\r\n' in prepared.body
        assert b"b'" not in prepared.body

    def test_file_object_keeps_name(self, session, tmp_path):
        path = tmp_path / "mdfe.xml"
        path.write_bytes(b"<MDFe/>")
        with path.open("rb") as fh:
            spec = _spec("POST", body={"Arquivo": fh}, multipart=True, headers=self._HEADERS)
            HttpTransport().execute(spec)
            _, kwargs = session.request.call_args
            assert kwargs["files"]["Arquivo"] == ("mdfe.xml", fh)

    def test_scalars_as_text(self, session):
        spec = _spec(
            "POST",
            body={"n": 1, "vazio": None, "ativo": True, "inativo": False},
            multipart=True,
            headers=self._HEADERS,
        )
        HttpTransport().execute(spec)
        _, kwargs = session.request.call_args
        assert kwargs["files"] == {
            "n": (None, "1"),
            "vazio": (None, ""),
            "ativo": (None, "1"),
            "inativo": (None, ""),
        }

    def test_empty_body_keeps_content_type(self, session):
        spec = _spec("POST", body={}, multipart=True, headers=self._HEADERS)
        HttpTransport().execute(spec)
        _, kwargs = session.request.call_args
        assert kwargs["headers"]["Content-Type"] == "multipart/form-data"
        assert "files" not in kwargs
        assert "data" not in kwargs

    def test_empty_body_on_the_wire(self):
        spec = _spec("POST", body={}, multipart=True, headers=self._HEADERS)
        kwargs = HttpTransport()._request_kwargs(spec)
        prepared = requests.Request("POST", _URL, headers=kwargs["headers"]).prepare()
        assert prepared.headers["Content-Type"] == "multipart/form-data"
