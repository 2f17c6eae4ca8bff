from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Azure service principal (Terraform azurerm provider)
    arm_tenant_id: Optional[str] = None
    arm_client_id: Optional[str] = None
    arm_client_secret: Optional[str] = None
    arm_subscription_id: Optional[str] = None

    # Azure Blob Storage for Terraform state + inventory
    tf_state_rg: str = "rg-terraportal-state"
    tf_state_storage_account: str = "terraportalstate"
    tf_state_container: str = "tfstate"
    inventory_container: str = "inventory"
    deployments_container: str = "deployments"
    azure_storage_connection_string: Optional[str] = None

    # AWS S3 (alternative inventory mirror)
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "us-east-1"
    s3_bucket_name: Optional[str] = None

    # GitHub Actions (execution_mode=github)
    github_token: Optional[str] = None
    github_repo: Optional[str] = None  # owner/repo
    github_api_url: str = "https://api.github.com"

    # Inventory
    inventory_path: str = "inventory.json"
    inventory_blob_name: str = "inventory.json"
    inventory_mirror: str = "none"  # none | azure | s3

    # Execution
    execution_mode: str = "demo"  # demo | github | terraform
    deployments_dir: str = "terraform/deployments"
    demo_step_delay_min: float = 1.2
    demo_step_delay_max: float = 2.2
    log_flush_every: int = 3
    terraform_binary: str = "terraform"
    terraform_timeout: int = 1800

    # App
    app_name: str = "terraportal"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    api_prefix: str = "/api"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def demo_mode(self) -> bool:
        return self.execution_mode == "demo"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def get_backend_config(self, deployment_id: str) -> dict:
        """azurerm remote-state settings; one state file per deployment."""
        return {
            "resource_group_name": self.tf_state_rg,
            "storage_account_name": self.tf_state_storage_account,
            "container_name": self.tf_state_container,
            "key": f"{deployment_id}/terraform.tfstate",
        }

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
