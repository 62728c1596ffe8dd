"""
Factory for creating storage provider instances.

Simplifies provider selection and initialization from a ServerConfig.
"""

from shared.config import ServerConfig
from shared.constants import (
    AWS_S3_ENDPOINT_TEMPLATE,
    BACKBLAZE_B2_ENDPOINT_TEMPLATE,
    CLOUDFLARE_R2_ENDPOINT_TEMPLATE,
)
from shared.models import StorageProvider
from .local_provider import LocalStorageProvider
from .s3_provider import S3CompatibleProvider
from .storage_provider import BlobStorageProvider


class StorageProviderFactory:
    """Factory for creating storage provider instances."""

    @staticmethod
    def create(config: ServerConfig) -> BlobStorageProvider:
        """
        Create the storage provider selected by the configuration.

        Args:
            config: Server configuration

        Returns:
            Storage provider instance

        Raises:
            ValueError: If the provider is missing required settings
        """
        provider_type = config.storage_provider
        if provider_type == StorageProvider.LOCAL:
            return LocalStorageProvider(str(config.resolved_data_dir))

        endpoint = StorageProviderFactory.get_endpoint(config)
        region = config.s3_region
        if provider_type == StorageProvider.CLOUDFLARE_R2:
            region = 'auto'  # R2 has no regions

        return S3CompatibleProvider(
            bucket=config.s3_bucket,
            endpoint_url=endpoint,
            region=region,
            access_key_id=config.s3_access_key_id,
            secret_access_key=config.s3_secret_access_key,
        )

    @staticmethod
    def get_endpoint(config: ServerConfig):
        """Endpoint URL for an S3-compatible provider, or None for the AWS default."""
        provider_type = config.storage_provider
        if config.s3_endpoint:
            return config.s3_endpoint

        if provider_type == StorageProvider.CLOUDFLARE_R2:
            if not config.s3_account_id:
                raise ValueError("S3_ACCOUNT_ID is required for Cloudflare R2")
            return CLOUDFLARE_R2_ENDPOINT_TEMPLATE.format(account_id=config.s3_account_id)

        elif provider_type == StorageProvider.BACKBLAZE_B2:
            if not config.s3_region:
                raise ValueError("S3_REGION is required for Backblaze B2")
            return BACKBLAZE_B2_ENDPOINT_TEMPLATE.format(region=config.s3_region)

        elif provider_type == StorageProvider.AWS_S3:
            if config.s3_region:
                return AWS_S3_ENDPOINT_TEMPLATE.format(region=config.s3_region)
            return None

        elif provider_type == StorageProvider.GENERIC_S3:
            raise ValueError("S3_ENDPOINT is required for generic S3-compatible storage")

        else:
            raise ValueError(f"Unknown provider type: {provider_type}")

    @staticmethod
    def get_provider_name(provider_type: StorageProvider) -> str:
        """Get human-readable provider name."""
        names = {
            StorageProvider.LOCAL: "Local Filesystem",
            StorageProvider.CLOUDFLARE_R2: "Cloudflare R2",
            StorageProvider.BACKBLAZE_B2: "Backblaze B2",
            StorageProvider.AWS_S3: "Amazon S3",
            StorageProvider.GENERIC_S3: "Generic S3-Compatible"
        }
        return names.get(provider_type, "Unknown")
