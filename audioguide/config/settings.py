from typing import Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class OverpassConfig(BaseSettings):
    """Overpass API configuration"""

    endpoint: str = "https://overpass-api.de/api/interpreter"
    timeout_seconds: float = Field(default=30.0, gt=0)
    query_timeout_seconds: int = Field(
        default=25,
        ge=1,
        description="Server-side [timeout:N] directive embedded in the query.",
    )

    model_config = SettingsConfigDict(
        env_prefix="OVERPASS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class NominatimConfig(BaseSettings):
    """Reverse geocoding configuration."""

    endpoint: str = "https://nominatim.openstreetmap.org/reverse"
    user_agent: str = "AudioGuide/1.0 (audio-guide-app)"
    timeout_seconds: float = Field(default=5.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="NOMINATIM_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class LoaderConfig(BaseSettings):
    """Attraction loading behaviour (debounce, retries, result cap)."""

    debounce_seconds: float = Field(default=0.5, ge=0)
    max_retries: int = Field(default=3, ge=0)
    backoff_base_seconds: float = Field(default=1.0, ge=0)
    max_attractions: int = Field(default=100, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="LOADER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class GenerationConfig(BaseSettings):
    """Audio guide generation configuration."""

    mode: Literal["staged", "remote"] = Field(
        default="staged",
        description="staged: facts/script/audio as separate calls; remote: one backend call.",
    )
    backend_url: str = "http://localhost:8080"
    soft_timeout_seconds: float = Field(default=30.0, gt=0)
    request_timeout_seconds: float = Field(default=90.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="GENERATION_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class BedrockConfig(BaseSettings):
    """Amazon Bedrock configuration."""

    region: str = Field(
        default="us-east-1",
        validation_alias="BEDROCK_REGION",
    )
    model_id: str = Field(
        default="amazon.nova-micro-v1:0",
        validation_alias="BEDROCK_MODEL_ID",
    )
    facts_max_tokens: int = Field(
        default=500,
        validation_alias="BEDROCK_FACTS_MAX_TOKENS",
        ge=1,
        le=4096,
    )
    facts_temperature: float = Field(
        default=0.7,
        validation_alias="BEDROCK_FACTS_TEMPERATURE",
        ge=0.0,
        le=1.0,
    )
    script_max_tokens: int = Field(
        default=300,
        validation_alias="BEDROCK_SCRIPT_MAX_TOKENS",
        ge=1,
        le=4096,
    )
    script_temperature: float = Field(
        default=0.8,
        validation_alias="BEDROCK_SCRIPT_TEMPERATURE",
        ge=0.0,
        le=1.0,
    )
    top_p: float = Field(
        default=0.9,
        validation_alias="BEDROCK_TOP_P",
        ge=0.0,
        le=1.0,
    )
    api_key: SecretStr | None = Field(
        default=None,
        validation_alias="BEDROCK_API_KEY",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class PollyConfig(BaseSettings):
    """Amazon Polly configuration."""

    region: str = "us-east-1"
    default_voice_id: str = "Joanna"
    engine: str = "neural"
    output_format: str = "mp3"
    access_key: Optional[str] = None
    secret_key: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="POLLY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class PreferencesConfig(BaseSettings):
    """Client-local durable preferences."""

    path: str = ".audioguide/preferences.json"
    language_key: str = "audioGuideLanguage"
    default_language: str = "English"

    model_config = SettingsConfigDict(
        env_prefix="PREFERENCES_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Application settings"""

    app_name: str = "Audio Guide"
    app_version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8080
    log_file: str = "logs/app.log"
    pipeline_log_file: str = "logs/generation_pipeline.log"

    # Points of interest
    overpass: OverpassConfig = Field(default_factory=OverpassConfig)
    loader: LoaderConfig = Field(default_factory=LoaderConfig)

    # Generation
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    nominatim: NominatimConfig = Field(default_factory=NominatimConfig)
    bedrock: BedrockConfig = Field(default_factory=BedrockConfig)
    polly: PollyConfig = Field(default_factory=PollyConfig)

    # Preferences
    preferences: PreferencesConfig = Field(default_factory=PreferencesConfig)

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
