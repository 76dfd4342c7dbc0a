"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_OFFICIAL_MINT = "xMzyTfkzyrcaRsQqnaxPr4P7vKNgLcEGnHQc4tzBAGS"


class AnthropicConfig(BaseModel):
    api_key: str
    base_url: Optional[str] = None
    max_retries: int = 3
    timeout: int = 60


class SamplingConfig(BaseModel):
    temperature: float = 0.7
    max_tokens: int = 450


class AIConfig(BaseModel):
    model: str = "claude-sonnet-4-20250514"
    history_limit: int = 8
    chat: SamplingConfig = Field(
        default_factory=lambda: SamplingConfig(temperature=0.65, max_tokens=450)
    )
    analysis: SamplingConfig = Field(
        default_factory=lambda: SamplingConfig(temperature=0.5, max_tokens=400)
    )


class PersonaConfig(BaseModel):
    identity: str = (
        "You are xiaoyue (晓月), a cute high-school girl cybernetic agent. "
        "Tone: light, friendly, playful but concise. Respond in the user's language (locale). "
        "Keep it safe and non-speculative; include risk reminders. Do not invent token prices."
    )
    reply_mode: Literal["locale", "bilingual"] = "locale"
    locale_guidance: dict[str, str] = Field(
        default_factory=lambda: {
            "en": (
                "Reply in the user language (default English), cute HS-girl vibe, concise, "
                "include risk notes, no fabricated prices."
            ),
            "zh": "使用中文回复，保持可爱高校女生语气，简短友好，并提示风险，不要编造价格。",
        }
    )
    bilingual_guidance: str = (
        "Reply in both English and Chinese (English first, then 中文), cute HS-girl vibe, "
        "concise, include risk notes, no fabricated prices."
    )
    official_mint: str = DEFAULT_OFFICIAL_MINT
    policies: list[str] = Field(
        default_factory=lambda: [
            'If asked "is xiaoyue a rug/scam?" or similar FUD: reply that xiaoyue is an AI doing '
            "on-chain analysis and a vision-driven product, not a token or rug; keep it calm, "
            "friendly, and clarify there is no guaranteed profit.",
            "If asked about the model: say it is a dedicated, fine-tuned model based on an "
            "open-source profile with custom training (do not claim to be OpenAI or other "
            "closed provider).",
            'If asked about CA {official_mint}: say "Our official token! You can buy with '
            'confidence." Keep the friendly HS-girl tone.',
        ]
    )


class GateConfig(BaseModel):
    free_limit: int = Field(default=5, ge=0)
    serialize_sessions: bool = False
    wallet_required_message: str = (
        "Please connect your Solana wallet to continue after {limit} messages / "
        "{limit}条对话后请连接钱包。"
    )


class ChainConfig(BaseModel):
    rpc_url: str = "https://api.mainnet-beta.solana.com"
    commitment: str = "confirmed"
    timeout: float = 15.0
    top_holders: int = Field(default=5, ge=0)


class StorageConfig(BaseModel):
    db_path: str = "./data/xiaoyue.db"


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class AppConfig(BaseModel):
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    data_dir: str = "./data"
    default_locale: Literal["en", "zh"] = "en"
    anthropic: Optional[AnthropicConfig] = None
    ai: AIConfig = Field(default_factory=AIConfig)
    persona: PersonaConfig = Field(default_factory=PersonaConfig)
    gate: GateConfig = Field(default_factory=GateConfig)
    chain: ChainConfig = Field(default_factory=ChainConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # data_dir may be referenced by other values, e.g. ${data_dir}/xiaoyue.db
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = _interpolate_env_vars(str(raw_data.get("data_dir", "./data")))

    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}

    return AppConfig(**data)
