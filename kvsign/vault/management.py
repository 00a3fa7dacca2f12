"""Vault provisioning through the resource management REST API."""

import logging

import httpx

from kvsign.core.errors import VaultProvisionError
from kvsign.core.settings import VaultSettings
from kvsign.vault.client import error_details, json_body
from kvsign.vault.types import (
    AccessPolicy,
    ServicePrincipalCredentials,
    VaultDescriptor,
)

logger = logging.getLogger(__name__)

VAULT_SKU = {"family": "A", "name": "standard"}


def vault_resource_url(
    settings: VaultSettings,
    credentials: ServicePrincipalCredentials,
    resource_group: str,
    vault_name: str,
) -> str:
    return (
        f"{settings.management_endpoint.rstrip('/')}"
        f"/subscriptions/{credentials.subscription_id}"
        f"/resourceGroups/{resource_group}"
        f"/providers/Microsoft.KeyVault/vaults/{vault_name}"
    )


def create_or_update_vault(
    client: httpx.Client,
    settings: VaultSettings,
    credentials: ServicePrincipalCredentials,
    resource_group: str,
    vault_name: str,
    region: str,
    policy: AccessPolicy,
    auth: httpx.Auth | None = None,
) -> VaultDescriptor:
    """Create the vault, or update its policy if it exists, and return its URI."""
    url = vault_resource_url(settings, credentials, resource_group, vault_name)
    payload = {
        "location": region,
        "properties": {
            "tenantId": credentials.tenant_id,
            "sku": VAULT_SKU,
            "accessPolicies": [policy.to_wire()],
        },
    }
    kwargs: dict = {
        "params": {"api-version": settings.management_api_version},
        "json": payload,
    }
    if auth is not None:
        kwargs["auth"] = auth

    logger.info("Creating or updating vault %s in %s", vault_name, region)
    try:
        response = client.put(url, **kwargs)
    except httpx.HTTPError as exc:
        raise VaultProvisionError(f"provisioning {vault_name} failed: {exc}") from exc
    if response.is_error:
        code, message = error_details(response)
        raise VaultProvisionError(message, status_code=response.status_code, code=code)

    body = json_body(response) or {}
    properties = body.get("properties")
    uri = properties.get("vaultUri") if isinstance(properties, dict) else None
    if not uri:
        raise VaultProvisionError(
            f"vault {vault_name} has no vaultUri", status_code=response.status_code
        )
    return VaultDescriptor(name=vault_name, uri=uri)
