"""应用配置管理。

使用 Pydantic Settings 统一读取环境变量，便于在本地/生产之间切换。
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """核心配置项。

    - ``database_url``：默认使用本地 SQLite，便于快速启动。
    - ``scorer_url``：外部朗读评分服务地址，未配置时所有提交走人工审核。
    - ``telegram_bot_token``：投递通道（Telegram Bot API）的令牌。
    """

    database_url: str = Field(
        default="sqlite:///./storage/hifz.db", description="SQLAlchemy 数据库 URL"
    )
    log_level: str = Field(default="INFO", description="hifz 日志级别")

    scorer_url: Optional[str] = Field(default=None, description="评分服务 URL")
    scorer_api_key: Optional[str] = Field(default=None, description="评分服务 API Key")
    scorer_timeout_seconds: float = Field(default=20.0, description="评分请求超时")

    telegram_bot_token: Optional[str] = Field(
        default=None, description="Telegram Bot Token，用于投递提交与通知"
    )
    telegram_api_base: str = Field(
        default="https://api.telegram.org", description="Bot API 基础地址"
    )
    delivery_timeout_seconds: float = Field(default=10.0, description="投递请求超时")

    total_pages: int = Field(default=602, description="课程总页数")

    model_config = {
        "env_prefix": "HIFZ_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """缓存后的全局配置实例。"""

    return Settings()
