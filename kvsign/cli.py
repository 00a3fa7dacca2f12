"""Command-line entry point: import an RSA key pair into a vault and sign a string."""

import argparse
import logging
import sys

import httpx

from kvsign.core.errors import KvsignError
from kvsign.core.settings import VaultSettings
from kvsign.pipeline.flow import SigningPipeline
from kvsign.vault.auth import ClientCredentialsAuth, token_object_id
from kvsign.vault.client import KeyVaultClient
from kvsign.vault.management import create_or_update_vault
from kvsign.vault.types import AccessPolicy, ServicePrincipalCredentials

logger = logging.getLogger("kvsign")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kvsign",
        description=(
            "Import a PEM RSA key pair into a key vault and sign a string with it."
        ),
    )
    parser.add_argument("client_id", help="Service principal application id")
    parser.add_argument("client_secret", help="Service principal secret")
    parser.add_argument("resource_group", help="Resource group holding the vault")
    parser.add_argument("tenant_id", help="Directory (tenant) id")
    parser.add_argument("subscription_id", help="Subscription id")
    parser.add_argument("region", help="Region to create the vault in")
    parser.add_argument("vault_name", help="Key vault name")
    parser.add_argument("private_key_file", help="PKCS#8 PEM private key")
    parser.add_argument("public_key_file", help="SubjectPublicKeyInfo PEM public key")
    parser.add_argument("string_to_sign", help="Text whose digest is signed")
    return parser


def run(
    args: argparse.Namespace, settings: VaultSettings, http: httpx.Client
) -> str:
    """Execute the full flow and return the signature value."""
    credentials = ServicePrincipalCredentials(
        tenant_id=args.tenant_id,
        subscription_id=args.subscription_id,
        client_id=args.client_id,
        client_secret=args.client_secret,
    )
    management_auth = ClientCredentialsAuth(
        http, credentials, settings.management_scope, settings.authority_host
    )
    vault_auth = ClientCredentialsAuth(
        http, credentials, settings.vault_scope, settings.authority_host
    )
    pipeline = SigningPipeline(
        KeyVaultClient(http, settings.api_version, auth=vault_auth), settings
    )

    pipeline.load_keys(args.private_key_file, args.public_key_file)

    policy = AccessPolicy(
        tenant_id=credentials.tenant_id,
        object_id=token_object_id(management_auth.token),
    )
    vault = create_or_update_vault(
        http,
        settings,
        credentials,
        args.resource_group,
        args.vault_name,
        args.region,
        policy,
        auth=management_auth,
    )

    pipeline.import_key(vault.uri)
    return pipeline.sign(args.string_to_sign).value


def main(
    argv: list[str] | None = None, transport: httpx.BaseTransport | None = None
) -> int:
    args = build_parser().parse_args(argv)
    settings = VaultSettings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        with httpx.Client(
            timeout=settings.timeout_seconds, transport=transport
        ) as http:
            value = run(args, settings, http)
    except (KvsignError, OSError) as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 1

    print(f"Sign result: {value}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
