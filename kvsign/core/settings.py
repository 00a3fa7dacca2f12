"""Tool settings loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict

KEYVAULT_API_VERSION_DEFAULT = "7.4"
MANAGEMENT_API_VERSION_DEFAULT = "2022-07-01"
TIMEOUT_SECONDS_DEFAULT = 30.0


class VaultSettings(BaseSettings):
    """Key vault, transport and signing defaults."""

    model_config = SettingsConfigDict(env_prefix="KVSIGN_")

    key_name: str = "testKey"
    api_version: str = KEYVAULT_API_VERSION_DEFAULT
    management_api_version: str = MANAGEMENT_API_VERSION_DEFAULT
    authority_host: str = "https://login.microsoftonline.com"
    management_endpoint: str = "https://management.azure.com"
    vault_scope: str = "https://vault.azure.net/.default"
    timeout_seconds: float = TIMEOUT_SECONDS_DEFAULT
    hsm: bool = False
    verify_signature: bool = True
    digest_algorithm: str = "SHA-256"
    sign_algorithm: str = "RS256"
    log_level: str = "INFO"

    @property
    def management_scope(self) -> str:
        """OAuth scope for the resource manager endpoint."""
        return f"{self.management_endpoint.rstrip('/')}/.default"
