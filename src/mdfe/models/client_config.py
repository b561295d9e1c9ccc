from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ClientConfig:
    """Read-only snapshot of everything a ManagerSaaS call needs.

    ``token`` is the pre-encoded Basic credential (base64 of ``usuario:senha``).
    Identifiers and token are opaque: nothing here checks their format.
    """

    cnpj: str = ""
    grupo: str = ""
    token: str = ""
    production: bool = True
    upload: bool = False
    decode: bool = False
    debug: bool = False

    @property
    def env(self) -> str:
        return "producao" if self.production else "homologacao"
