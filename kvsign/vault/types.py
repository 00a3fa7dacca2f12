"""Type definitions for key vault requests and responses."""

from pydantic import BaseModel, ConfigDict, Field, SecretStr

DEFAULT_KEY_PERMISSIONS = [
    "get",
    "list",
    "update",
    "import",
    "delete",
    "sign",
    "verify",
]


class ServicePrincipalCredentials(BaseModel):
    """Identity and subscription used to bootstrap authenticated sessions."""

    tenant_id: str
    subscription_id: str
    client_id: str
    client_secret: SecretStr


class KeyAttributes(BaseModel):
    """Key lifecycle attributes sent with an import."""

    enabled: bool = True
    nbf: int | None = None
    exp: int | None = None

    def to_wire(self) -> dict:
        return self.model_dump(exclude_none=True)


class KeyHandle(BaseModel):
    """Reference to a key held by the vault."""

    model_config = ConfigDict(frozen=True)

    vault_uri: str
    key_name: str
    version: str = ""
    kid: str | None = None

    @property
    def key_url(self) -> str:
        """Versioned key URL; an empty version addresses the latest one."""
        return f"{self.vault_uri.rstrip('/')}/keys/{self.key_name}/{self.version}"


class AccessPolicy(BaseModel):
    """Vault access policy entry for one principal."""

    tenant_id: str
    object_id: str
    key_permissions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_KEY_PERMISSIONS)
    )

    def to_wire(self) -> dict:
        return {
            "tenantId": self.tenant_id,
            "objectId": self.object_id,
            "permissions": {
                "keys": self.key_permissions,
                "secrets": [],
                "certificates": [],
                "storage": [],
            },
        }


class VaultDescriptor(BaseModel):
    """A provisioned vault and the URI its data plane is reached at."""

    name: str
    uri: str
