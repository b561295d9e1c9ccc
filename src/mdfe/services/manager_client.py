"""ManagerSaaS MDF-e client.

Every call reads one immutable ClientConfig snapshot, builds the request,
runs it through the transport and normalizes the response. The fiscal
operations additionally reject the ``EXCEPTION,...`` text envelope.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

from mdfe.config import PATHS, load_client_config
from mdfe.models.client_config import ClientConfig
from mdfe.models.parameter import Parameter, ParamsLike
from mdfe.models.response import NormalizedResponse
from mdfe.services.params import dedupe, flatten, force
from mdfe.services.request_builder import build_request
from mdfe.services.response import check_envelope, interpret
from mdfe.services.transport import HttpTransport

logger = logging.getLogger(__name__)

ARQUIVO_PREFIX = "formato=xml\r\n"

DOC_AUTORIZACAO = 1
DOC_ENCERRAMENTO = 2
DOC_CANCELAMENTO = 3

_DOCUMENTO_BY_TYPE = {
    DOC_ENCERRAMENTO: "Encerramento",
    DOC_CANCELAMENTO: "Cancelamento",
}

Headers = Iterable[tuple[str, str]]


class ManagerClient:
    def __init__(
        self,
        config: ClientConfig | None = None,
        transport: HttpTransport | None = None,
    ) -> None:
        self._config = config or ClientConfig()
        self.transport = transport or HttpTransport()

    @classmethod
    def from_env(cls, transport: HttpTransport | None = None) -> ManagerClient:
        """Client configured from manager.yaml, env vars and the keyring."""
        return cls(load_client_config(), transport)

    # --- Configuration ---

    @property
    def config(self) -> ClientConfig:
        return self._config

    def _update(self, **changes: Any) -> None:
        self._config = replace(self._config, **changes)

    def set_production(self, is_production: bool) -> None:
        self._update(production=is_production)

    def set_cnpj(self, cnpj: str) -> None:
        self._update(cnpj=cnpj)

    def set_grupo(self, grupo: str) -> None:
        self._update(grupo=grupo)

    def set_token(self, token: str) -> None:
        """Set the Basic credential, already encoded as base64(``usuario:senha``)."""
        self._update(token=token)

    def set_upload(self, is_upload: bool) -> None:
        self._update(upload=is_upload)

    def set_decode(self, decode: bool) -> None:
        self._update(decode=decode)

    def set_debug(self, is_debug: bool) -> None:
        self._update(debug=is_debug)

    @property
    def production(self) -> bool:
        return self._config.production

    @property
    def cnpj(self) -> str:
        return self._config.cnpj

    @property
    def grupo(self) -> str:
        return self._config.grupo

    @property
    def token(self) -> str:
        return self._config.token

    @property
    def upload(self) -> bool:
        return self._config.upload

    @property
    def decode(self) -> bool:
        return self._config.decode

    @property
    def debug(self) -> bool:
        return self._config.debug

    # --- Generic verbs ---

    def _execute(
        self,
        method: str,
        path: str,
        params: ParamsLike | None = None,
        body: Mapping[str, Any] | None = None,
        headers: Headers = (),
        config: ClientConfig | None = None,
    ) -> NormalizedResponse:
        if config is None:
            config = self._config
        spec = build_request(config, path, method, params=params, body=body, headers=headers)
        result = self.transport.execute(spec)
        return interpret(
            result.raw_body,
            result.status_code,
            result.diagnostics,
            decode=config.decode,
            debug=config.debug,
        )

    def get(self, path: str, params: ParamsLike | None = None, headers: Headers = ()) -> NormalizedResponse:
        return self._execute("GET", path, params, headers=headers)

    def post(
        self,
        path: str,
        body: Mapping[str, Any] | None = None,
        params: ParamsLike | None = None,
        headers: Headers = (),
    ) -> NormalizedResponse:
        return self._execute("POST", path, params, body, headers)

    def put(
        self,
        path: str,
        body: Mapping[str, Any] | None = None,
        params: ParamsLike | None = None,
        headers: Headers = (),
    ) -> NormalizedResponse:
        return self._execute("PUT", path, params, body, headers)

    def delete(self, path: str, params: ParamsLike | None = None, headers: Headers = ()) -> NormalizedResponse:
        return self._execute("DELETE", path, params, headers=headers)

    def options(self, path: str, params: ParamsLike | None = None, headers: Headers = ()) -> NormalizedResponse:
        return self._execute("OPTIONS", path, params, headers=headers)

    # --- MDF-e operations ---

    @staticmethod
    def _checked(response: NormalizedResponse, action: str) -> NormalizedResponse:
        outcome = check_envelope(response)
        if not outcome.ok:
            logger.info("ManagerSaaS rejeitou %s: %s", action, outcome.error.message)
        return outcome.unwrap()

    def query_mdfe(self, params: ParamsLike | None = None) -> NormalizedResponse:
        """Search MDF-es (filters such as ``Filtro``, ``Campos``, ``Limite``)."""
        return self._checked(self.get(PATHS["consulta"], params), "consulta")

    def issue_mdfe_xml(
        self,
        xml: str,
        params: ParamsLike | None = None,
        body: Mapping[str, Any] | None = None,
    ) -> NormalizedResponse:
        """Submit an MDF-e XML (``/mdfe/envia``).

        The XML goes in a single ``Arquivo`` form field prefixed with
        ``formato=xml\\r\\n``; any other ``Arquivo`` from the caller is dropped.
        """
        config = self._config
        fields = dict(body or {})
        if config.upload:
            fields = flatten(fields)
        fields.pop("Arquivo", None)
        fields["Arquivo"] = f"{ARQUIVO_PREFIX}{xml}"

        query = dedupe(params, ("Arquivo",))
        response = self._execute("POST", PATHS["envia"], query, fields, config=config)
        return self._checked(response, "envio")

    def close_mdfe(self, params: ParamsLike) -> NormalizedResponse:
        """Close (encerrar) an MDF-e; params carry key, date and municipality."""
        return self._checked(self.post(PATHS["encerra"], params=params), "encerramento")

    def cancel_mdfe(self, params: ParamsLike) -> NormalizedResponse:
        """Cancel an MDF-e; params carry the key and the justification."""
        return self._checked(self.post(PATHS["cancela"], params=params), "cancelamento")

    def discard_mdfe(self, key: str, params: ParamsLike | None = None) -> NormalizedResponse:
        query = force(params, Parameter("ChaveNota", key))
        return self._checked(self.post(PATHS["descarta"], params=query), "descarte")

    def fetch_xml(
        self,
        key: str,
        doc_type: int = DOC_AUTORIZACAO,
        params: ParamsLike | None = None,
    ) -> NormalizedResponse:
        """Download an MDF-e XML.

        *doc_type*: 1 authorization, 2 closing (Encerramento), 3 cancellation
        (Cancelamento). Any other value behaves like 1.
        """
        query = dedupe(params, ("ChaveNota", "Documento"))
        query.append(Parameter("ChaveNota", key))
        documento = _DOCUMENTO_BY_TYPE.get(doc_type)
        if documento:
            query.append(Parameter("Documento", documento))
        return self._checked(self.get(PATHS["xml"], query), "busca de XML")
