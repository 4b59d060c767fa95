"""配置管理模块。

支持从环境变量（BEDROCK_CORE_ 前缀）、.env 以及 config.yaml 加载配置。
进程启动时加载一次，作为不可变快照通过构造参数传给各组件。
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, YamlConfigSettingsSource

from bedrock_core.providers.registry import MODEL_CATALOG

APP_NAME = "bedrock_core"
CONFIG_DIR = Path.home() / ".config" / APP_NAME
CONFIG_FILE_NAME = "config.yaml"

DEFAULT_CAPTION_PROMPT = (
    "Please caption the following image for the sake of accessibility. "
    "Return just the caption, and nothing else. Keep it clean, and under 100 words."
)


def resolve_config_file() -> Path:
    """按优先级查找 config.yaml：显式环境变量 > 当前目录 > 用户配置目录。"""

    explicit = os.getenv("BEDROCK_CORE_CONFIG_FILE")
    if explicit:
        return Path(explicit).expanduser()
    local = Path.cwd() / CONFIG_FILE_NAME
    if local.exists():
        return local
    return CONFIG_DIR / CONFIG_FILE_NAME


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- AWS ----
    aws_profile: Optional[str] = Field(default=None, description="AWS 凭证 profile，为空时使用默认凭证链")
    aws_region: str = Field(default="us-west-2", description="Bedrock 所在区域")

    # ---- 模型 ----
    default_model: str = Field(
        default="anthropic.claude-3-haiku-20240307-v1:0",
        description="命令行未指定 -m 时使用的模型 ID",
    )
    system_prompt: Optional[str] = Field(default=None, description="对话系统提示词")
    temperature: Optional[float] = Field(default=None, ge=0.0, le=1.0, description="覆盖默认温度")
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0, description="覆盖默认 top_p")
    max_tokens: Optional[int] = Field(default=None, ge=1, description="覆盖默认最大 token 数")

    # ---- 会话整理（标题/摘要） ----
    housekeeping_model: str = Field(
        default="anthropic.claude-3-haiku-20240307-v1:0",
        description="生成会话标题与摘要所用的模型",
    )
    retry_max_attempts: int = Field(default=3, ge=1, le=10, description="标题/摘要生成最大尝试次数")
    strict_capability_probe: bool = Field(
        default=False,
        description="能力查询失败时是否直接报错（默认降级为不支持）",
    )

    # ---- 界面 ----
    show_banner: bool = Field(default=True, description="启动时是否打印横幅")

    # ---- 图片描述 ----
    supported_images: List[str] = Field(default_factory=lambda: ["jpg", "jpeg", "png", "gif", "webp"])
    caption_prompt: str = Field(default=DEFAULT_CAPTION_PROMPT)

    # ---- 源码审阅 ----
    source_extensions: List[str] = Field(default_factory=lambda: ["py", "rs", "js", "ts", "go", "java", "toml"])
    source_ignore_dirs: List[str] = Field(
        default_factory=lambda: ["node_modules", ".git", "target", "__pycache__", ".venv"]
    )

    # ---- 存储与日志 ----
    storage_root: str = Field(default=str(CONFIG_DIR / "chats"), description="会话文件目录")
    log_dir: str = Field(default=str(CONFIG_DIR / "logs"), description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_prefix="BEDROCK_CORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator("default_model", "housekeeping_model")
    @classmethod
    def validate_model_id(cls, v: str) -> str:
        if v not in MODEL_CATALOG:
            raise ValueError(f"unknown model id: {v!r}")
        return v

    @field_validator("supported_images", "source_extensions")
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        return [ext.lower().lstrip(".") for ext in v]

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
            YamlConfigSettingsSource(settings_cls, yaml_file=resolve_config_file()),
            file_secret_settings,
        )

    def inference_overrides(self) -> Dict[str, Any]:
        """配置文件中的推理参数覆盖值（未设置的为 None，构造请求时会被忽略）。"""

        return {"temperature": self.temperature, "top_p": self.top_p, "max_tokens": self.max_tokens}


def write_default_config(path: Optional[Path] = None) -> Path:
    """把默认配置写成 YAML（--init 使用），返回写入路径。"""

    target = Path(path or os.getenv("BEDROCK_CORE_CONFIG_FILE") or CONFIG_DIR / CONFIG_FILE_NAME).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    defaults = Settings.model_construct().model_dump()
    data = {k: v for k, v in defaults.items() if v is not None}
    target.write_text(yaml.safe_dump(data, allow_unicode=True, sort_keys=False), encoding="utf-8")
    return target


settings = Settings()
