"""
应用配置
从环境变量 / .env 读取配置
"""
from typing import Any, Dict, List
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用设置"""

    # 应用基础配置
    APP_NAME: str = "StayHub"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./stayhub.db"

    # JWT 配置（令牌由认证服务签发，这里只做校验）
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480

    # 退款策略默认值（configurations 表中没有 refund_fee_tiers 时使用）
    DEFAULT_REFUND_TIERS: List[Dict[str, Any]] = [
        {"min_hours": 72, "fee_percentage": 0},
        {"min_hours": 24, "fee_percentage": 25},
        {"min_hours": 0, "fee_percentage": 50},
    ]
    REFUND_PROCESSING_DAYS_ONLINE: int = 7
    REFUND_PROCESSING_DAYS_OFFLINE: int = 10

    model_config = ConfigDict(env_file=".env", case_sensitive=True)


# 全局设置实例
settings = Settings()
