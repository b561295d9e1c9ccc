from __future__ import annotations

import argparse
import getpass
import json
import logging
import stat
import sys
from pathlib import Path

from mdfe.models.parameter import Parameter
from mdfe.services.exceptions import ManagerError


def _check_keyring_available() -> bool:
    """Check if keyring is installed with a usable backend."""
    try:
        import keyring
        from keyring.backends.fail import Keyring as FailKeyring

        return not isinstance(keyring.get_keyring(), FailKeyring)
    except Exception:
        return False


def _upsert_env_var(env_file: Path, key: str, value: str) -> None:
    """Set or update a key=value pair in a .env file, creating it if needed."""
    from dotenv import set_key

    env_file.parent.mkdir(parents=True, exist_ok=True)
    if not env_file.exists():
        env_file.touch()
    set_key(str(env_file), key, value)


def _remove_env_var(env_file: Path, key: str) -> None:
    from dotenv import unset_key

    if env_file.exists():
        unset_key(str(env_file), key)


def _warn_open_permissions(env_file: Path) -> None:
    """Warn if .env file has group/other read permissions (Unix only)."""
    try:
        mode = env_file.stat().st_mode
        if mode & (stat.S_IRGRP | stat.S_IROTH):
            print(f"\n  AVISO: {env_file} tem permissões abertas.")
            print("  Recomendação: chmod 600", env_file)
    except OSError:
        pass


def _setup_token(config_dir: Path) -> bool:
    """Interactive token setup. Returns True if a token was stored."""
    print()
    print("Configuração do token de acesso ManagerSaaS")
    print("───────────────────────────────────────────")
    print()

    token = getpass.getpass("Token (base64 de usuario:senha, vazio para pular): ").strip()
    if not token:
        print("  Configuração de token pulada.")
        return False

    env_file = config_dir / ".env"

    print()
    print("Onde deseja armazenar o token?")
    keyring_ok = _check_keyring_available()
    options: list[tuple[str, str]] = []
    if keyring_ok:
        options.append(("1", "Keychain do sistema (recomendado)"))
    options.append(("2", "Arquivo .env no diretório de configuração"))
    for num, label in options:
        print(f"  {num}. {label}")
    if not keyring_ok:
        print()
        print("  Nota: keychain do sistema indisponível (sem backend configurado).")

    print()
    valid_choices = {num for num, _ in options}
    choice = ""
    while choice not in valid_choices:
        choice = input(f"Escolha [{'/'.join(sorted(valid_choices))}]: ").strip()

    from mdfe.config import _delete_keyring_token, _set_keyring_token

    if choice == "1":
        if _set_keyring_token(token):
            print("  Token armazenado no keychain do sistema.")
            _remove_env_var(env_file, "MANAGER_TOKEN")
            return True
        print("  ERRO: Falha ao armazenar no keychain. Salvando no .env como alternativa.")

    _upsert_env_var(env_file, "MANAGER_TOKEN", token)
    print(f"  Token salvo em {env_file}")
    _warn_open_permissions(env_file)
    _delete_keyring_token()
    return True


def _init_config() -> None:
    """Create manager.yaml in the config dir and optionally store the token."""
    from mdfe.config import PROFILE_FILENAME, get_config_dir, save_profile

    config_dir = get_config_dir()
    profile = config_dir / PROFILE_FILENAME
    if profile.exists():
        print(f"  já existe: {profile}")
    else:
        cnpj = input("CNPJ da software house: ").strip()
        grupo = input("Grupo do Manager: ").strip()
        save_profile(
            {
                "cnpj": cnpj,
                "grupo": grupo,
                "production": False,
                "upload": False,
                "decode": False,
                "debug": False,
            }
        )
        print(f"  criado: {profile}")

    try:
        answer = input("Deseja configurar o token agora? [S/n]: ").strip().lower()
        if answer in ("", "s", "sim", "y", "yes"):
            _setup_token(config_dir)
    except (EOFError, KeyboardInterrupt):
        print()

    print()
    print(f"Configuração: {config_dir}")


def _parse_params(items: list[str]) -> list[Parameter]:
    """Turn ``Nome=Valor`` arguments into parameters."""
    params = []
    for item in items:
        name, sep, value = item.partition("=")
        if not sep:
            raise SystemExit(f"Parâmetro inválido (use Nome=Valor): {item}")
        params.append(Parameter(name, value))
    return params


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="manager-mdfe", description="Cliente MDF-e ManagerSaaS")
    env = parser.add_mutually_exclusive_group()
    env.add_argument("--producao", dest="production", action="store_true", default=None)
    env.add_argument("--homologacao", dest="production", action="store_false", default=None)
    parser.add_argument("--debug", action="store_true", help="inclui diagnósticos da requisição")
    parser.add_argument("--verbose", "-v", action="store_true", help="log detalhado")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init", help="cria manager.yaml e configura o token")

    p = sub.add_parser("consulta", help="consulta MDF-es")
    p.add_argument("params", nargs="*", metavar="Nome=Valor")

    p = sub.add_parser("envia", help="envia um MDF-e a partir do XML")
    p.add_argument("arquivo", type=Path)
    p.add_argument("params", nargs="*", metavar="Nome=Valor")

    for name, help_text in (("encerra", "encerra um MDF-e"), ("cancela", "cancela um MDF-e")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("params", nargs="+", metavar="Nome=Valor")

    p = sub.add_parser("descarta", help="descarta um MDF-e")
    p.add_argument("chave")
    p.add_argument("params", nargs="*", metavar="Nome=Valor")

    p = sub.add_parser("xml", help="baixa o XML de um MDF-e")
    p.add_argument("chave")
    p.add_argument("--tipo", type=int, choices=(1, 2, 3), default=1)
    p.add_argument("--saida", type=Path, help="grava o XML neste arquivo")
    p.add_argument("params", nargs="*", metavar="Nome=Valor")
    return parser


def _print_response(data: dict) -> None:
    body = data["body"]
    if isinstance(body, str) and "info" not in data:
        print(body)
        return
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _run(args: argparse.Namespace) -> None:
    from mdfe.services.manager_client import ManagerClient

    client = ManagerClient.from_env()
    if args.production is not None:
        client.set_production(args.production)
    if args.debug:
        client.set_debug(True)

    params = _parse_params(getattr(args, "params", []))

    if args.command == "consulta":
        response = client.query_mdfe(params)
    elif args.command == "envia":
        response = client.issue_mdfe_xml(args.arquivo.read_text(encoding="utf-8"), params)
    elif args.command == "encerra":
        response = client.close_mdfe(params)
    elif args.command == "cancela":
        response = client.cancel_mdfe(params)
    elif args.command == "descarta":
        response = client.discard_mdfe(args.chave, params)
    else:
        response = client.fetch_xml(args.chave, args.tipo, params)
        if args.saida is not None and isinstance(response.body, str):
            args.saida.write_text(response.body, encoding="utf-8")
            print(f"XML salvo em {args.saida}")
            return

    _print_response(response.to_dict())


def main(argv: list[str] | None = None) -> None:
    """Entry point for the manager-mdfe CLI."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "init":
        _init_config()
        return

    try:
        _run(args)
    except ManagerError as e:
        print(f"Erro: {e.message}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
