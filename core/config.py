"""
配置文件 - 项目配置管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from typing import Optional


class StorageSettings(BaseModel):
    # Credentials
    access_key: Optional[str] = None
    secret_key: Optional[str] = None

    use_https: bool = False
    # Name of a well-known region (z0, z1, ...) used as static zone; skips remote lookup
    region_id: Optional[str] = None

    # Per-role host overrides, take precedence over the resolved zone
    rs_host: Optional[str] = None
    rsf_host: Optional[str] = None
    io_host: Optional[str] = None
    api_host: Optional[str] = None

    # Fixed hosts
    central_rs_host: str = "rs.qiniu.com"
    uc_host: str = "uc.qbox.me"

    # Transport
    timeout: float = 30.0
    max_retry_attempts: int = 2
    retry_delay: float = 0.5
    debug: bool = False


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = "kodo-bucket-client"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # 分组配置：对象存储采用嵌套模型，环境变量形如 STORAGE__ACCESS_KEY
    storage: StorageSettings = Field(default_factory=StorageSettings)

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("ENVIRONMENT", mode="before")
    @classmethod
    def _normalize_environment(cls, v):
        """环境名统一为小写，避免 Production / production 混用。"""
        if isinstance(v, str):
            return v.strip().lower()
        return v


settings = Settings()
