"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import Dict, List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Persistence
    persistence_backend: str = "mongo"  # "mongo" or "memory"
    mongo_uri: str = "mongodb://localhost:27017/?replicaSet=rs0"
    mongo_db: str = "paf_workflow_dev"

    # Identity provider (bearer tokens)
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_audience: str = ""

    # Role gate
    role_policy: str = "equality"  # "equality" or "delegating"
    # Format: "superintendent:business_official,requesting_admin;admin:hr"
    role_delegations: str = ""
    template_admin_roles: str = "admin,hr"

    # Tenancy
    default_tenant_id: str = "district-1"

    # Templates
    seed_default_templates: bool = False

    # Timeline
    overdue_after_days: int = 5

    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"

    # CORS - set to "*" to allow all origins (simpler for internal/VM deployment)
    cors_origins: str = "*"

    # Environment
    environment: str = "development"
    debug: bool = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def template_admin_roles_list(self) -> List[str]:
        """Parse template admin roles string to list"""
        return [role.strip() for role in self.template_admin_roles.split(",") if role.strip()]

    @property
    def role_delegations_map(self) -> Dict[str, List[str]]:
        """Parse role delegations string to {role: [roles it may act for]}"""
        delegations: Dict[str, List[str]] = {}
        for entry in self.role_delegations.split(";"):
            if ":" not in entry:
                continue
            role, targets = entry.split(":", 1)
            delegations[role.strip()] = [t.strip() for t in targets.split(",") if t.strip()]
        return delegations

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
