from __future__ import annotations

import os
from pathlib import Path

import platformdirs
import yaml
from dotenv import load_dotenv

from mdfe.models.client_config import ClientConfig

APP_NAME = "manager-mdfe"

KEYRING_SERVICE = "manager-mdfe"
KEYRING_USERNAME = "manager-token"

CONFIG_DIR_ENV = "MANAGER_MDFE_CONFIG_DIR"
PROFILE_FILENAME = "manager.yaml"


def _resolve_config_dir_for_dotenv() -> Path | None:
    """Resolve the config dir for .env loading before .env itself is read.

    Only checks sources available before .env is loaded (shell env var,
    dev layout, an already existing platformdirs directory).
    """
    from_env = os.environ.get(CONFIG_DIR_ENV)
    if from_env:
        return Path(from_env)
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / "config"
    if candidate.is_dir():
        return candidate
    pd = Path(platformdirs.user_config_dir(APP_NAME))
    if pd.is_dir():
        return pd
    return None


# Load .env: cwd first (highest priority), then config dir (won't override)
load_dotenv()
_cfg_dir = _resolve_config_dir_for_dotenv()
if _cfg_dir is not None:
    load_dotenv(_cfg_dir / ".env")


def get_config_dir() -> Path:
    """Resolve the config directory. Re-evaluated on each call to pick up env changes.

    Priority: 1) MANAGER_MDFE_CONFIG_DIR, 2) dev repo layout, 3) platformdirs.
    """
    from_env = os.environ.get(CONFIG_DIR_ENV)
    if from_env:
        return Path(from_env)
    # Development layout: src/mdfe/config.py -> ../../.. = project root
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / "config"
    if candidate.is_dir():
        return candidate
    return Path(platformdirs.user_config_dir(APP_NAME))


ENDPOINTS = {
    "producao": "https://managersaas.tecnospeed.com.br:8081/ManagerAPIWeb",
    "homologacao": "https://managersaashom.tecnospeed.com.br:7071/ManagerAPIWeb",
}

PATHS = {
    "consulta": "/mdfe/consulta",
    "envia": "/mdfe/envia",
    "encerra": "/mdfe/encerra",
    "cancela": "/mdfe/cancela",
    "descarta": "/mdfe/descarta",
    "xml": "/mdfe/xml",
}

MANAGER_TIMEOUT = 60

_TRUTHY = frozenset({"1", "true", "yes", "sim", "s", "on"})


# --- Keyring helpers ---


def _get_keyring_token() -> str | None:
    """Try to get the access token from the OS keyring.

    Returns None on any failure (no backend, not stored, dbus errors, etc.).
    """
    try:
        import keyring

        return keyring.get_password(KEYRING_SERVICE, KEYRING_USERNAME)
    except Exception:
        return None


def _set_keyring_token(token: str) -> bool:
    """Store the access token in the OS keyring. Returns True on success."""
    try:
        import keyring

        keyring.set_password(KEYRING_SERVICE, KEYRING_USERNAME, token)
        return True
    except Exception:
        return False


def _delete_keyring_token() -> bool:
    """Remove the access token from the OS keyring. Returns True on success."""
    try:
        import keyring

        keyring.delete_password(KEYRING_SERVICE, KEYRING_USERNAME)
        return True
    except Exception:
        return False


def get_token() -> str:
    """Return the ManagerSaaS access token.

    Priority: 1) MANAGER_TOKEN env var, 2) OS keyring, 3) empty string.
    The token is never validated here; an empty one surfaces as a remote
    rejection.
    """
    token = os.environ.get("MANAGER_TOKEN")
    if token is not None:
        return token
    return _get_keyring_token() or ""


# --- YAML profile ---


def load_yaml(path: Path) -> dict:
    """Load and parse a YAML file, returning the top-level dict."""
    return yaml.safe_load(path.read_text()) or {}


def load_profile() -> dict:
    """Load config/manager.yaml, or an empty dict when it does not exist."""
    path = get_config_dir() / PROFILE_FILENAME
    if not path.is_file():
        return {}
    return load_yaml(path)


def save_profile(data: dict) -> Path:
    """Write config/manager.yaml (atomic write)."""
    cfg = get_config_dir()
    cfg.mkdir(parents=True, exist_ok=True)
    path = cfg / PROFILE_FILENAME
    tmp = path.with_suffix(".tmp")
    tmp.write_text(yaml.dump(data, default_flow_style=False, allow_unicode=True))
    os.replace(tmp, path)
    return path


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUTHY


def load_client_config() -> ClientConfig:
    """Build a ClientConfig from the YAML profile, env vars and keyring.

    Env vars (MANAGER_CNPJ, MANAGER_GRUPO, MANAGER_PRODUCTION, ...) override
    the profile values.
    """
    profile = load_profile()
    defaults = ClientConfig()

    def pick(key: str, default: object) -> object:
        env_val = os.environ.get(f"MANAGER_{key.upper()}")
        if env_val is not None:
            return env_val
        # blank YAML keys (``grupo:``) load as None
        value = profile.get(key)
        return default if value is None else value

    return ClientConfig(
        cnpj=str(pick("cnpj", defaults.cnpj)),
        grupo=str(pick("grupo", defaults.grupo)),
        token=get_token(),
        production=_as_bool(pick("production", defaults.production)),
        upload=_as_bool(pick("upload", defaults.upload)),
        decode=_as_bool(pick("decode", defaults.decode)),
        debug=_as_bool(pick("debug", defaults.debug)),
    )
