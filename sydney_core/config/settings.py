"""配置管理模块。

支持从环境变量（SYDNEY_ 前缀）、.env 以及 sydney.yaml 加载配置。
YAML 文件查找顺序：SYDNEY_CONFIG_FILE 指定的路径、当前目录、/etc/sydney。
"""

import os
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, YamlConfigSettingsSource


def _yaml_candidates() -> List[Path]:
    """按优先级返回可能存在的配置文件，不存在的文件会被 pydantic-settings 跳过。"""

    candidates: List[Path] = []
    explicit = os.getenv("SYDNEY_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "sydney.yaml",
        Path("/etc/sydney/sydney.yaml"),
    ])
    # YamlConfigSettingsSource 会合并多个文件，后面的覆盖前面的，所以倒序传入
    return list(reversed(candidates))


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 远端聊天服务 ----
    bing_cookie_u: Optional[str] = Field(default=None, description="登录态 Cookie _U 的值")
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    use_proxy: bool = Field(default=False, description="是否通过代理访问外部服务")
    http_proxy: Optional[str] = Field(default=None, description="代理地址，如 http://127.0.0.1:7890")
    protocol_profile: str = Field(default="sydney-2023-03", description="协议常量版本，见 providers/registry.py")

    # ---- 会话缓存 ----
    session_ttl_seconds: float = Field(default=300.0, gt=0, description="会话空闲过期时间（滑动）")
    session_sweep_seconds: float = Field(default=10.0, gt=0, description="过期会话清扫间隔")

    # ---- Telegram 前端 ----
    telegram_api_key: Optional[str] = Field(default=None, description="Telegram Bot Token")
    poll_timeout: int = Field(default=60, ge=0, description="getUpdates 长轮询秒数")
    max_workers: int = Field(default=16, ge=1, description="并行处理用户消息的线程数")

    # ---- 回复文案 ----
    fallback_answer: str = Field(default="Sorry, something went wrong. Please try again later.")
    repeated_answer: str = Field(default="I'm still working on your last message, please wait.")
    command_reset_answer: str = Field(default="The conversation has been reset.")
    command_start_answer: str = Field(default="Hi, send me a message to start chatting.")
    command_help_answer: str = Field(default="Send any text to chat, /reset to start a new conversation.")

    # ---- 日志 ----
    log_level: str = Field(default="DEBUG", description="日志级别")
    log_dir: str = Field(default="logs", description="日志目录")
    log_filename: str = Field(default="sydney.log", description="日志文件名")
    log_max_bytes: int = Field(default=100 * 1024 * 1024, ge=1024, description="单个日志文件大小上限")
    log_backup_count: int = Field(default=10, ge=0, description="保留的历史日志文件数")
    log_console: bool = Field(default=False, description="是否同时输出到控制台")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_prefix="SYDNEY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return (v or "INFO").upper()

    @model_validator(mode="after")
    def check_proxy(self) -> "Settings":
        if self.use_proxy and not self.http_proxy:
            raise ValueError("http_proxy is required when use_proxy is enabled")
        return self

    @property
    def proxy_url(self) -> Optional[str]:
        """实际生效的代理地址，未启用代理时为 None。"""

        return self.http_proxy if self.use_proxy else None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=_yaml_candidates()),
            file_secret_settings,
        )


settings = Settings()
