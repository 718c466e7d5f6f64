"""Configuration schemas.

Defines the models loaded from defaults.toml: the generator (LiteLLM
routing), the change source, stream handling, and the HTTP server.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class SectionDetection(StrEnum):
    """How the streaming core decides which field a fragment belongs to."""

    STRUCTURAL = "structural"
    MARKER = "marker"


class GeneratorConfig(BaseModel):
    """Language model used to write the notes."""

    provider: str = Field(default="openai", description="Provider identifier")
    model: str = Field(default="gpt-4.1-mini", description="LiteLLM model identifier")
    display_name: str = Field(default="GPT-4.1 Mini", description="Human-friendly model name")
    api_key_env: str = Field(
        default="OPENAI_API_KEY", description="Environment variable holding the API key"
    )
    api_base: str = Field(default="", description="Custom API base URL (empty = provider default)")
    timeout: int = Field(default=120, gt=0, description="Timeout in seconds for the model call")
    max_retries: int = Field(
        default=3, ge=1, le=10, description="Attempts for transient initiation failures"
    )
    json_mode: bool = Field(
        default=True, description="Request a JSON object response format"
    )


class SourceConfig(BaseModel):
    """Where merged changes are read from."""

    repo_path: str = Field(default=".", description="Path to the git repository")
    ref: str = Field(default="HEAD", description="Branch or ref whose history is listed")
    per_page: int = Field(default=10, ge=1, le=100, description="Default page size")
    merges_only: bool = Field(
        default=True, description="List merge commits only (False for squash-merge repos)"
    )
    web_url: str = Field(
        default="", description="Repository web URL used to build change links"
    )


class StreamConfig(BaseModel):
    """Streaming core behaviour."""

    section_detection: SectionDetection = Field(
        default=SectionDetection.STRUCTURAL,
        description="Structural JSON tokenizer or substring markers",
    )


class ServerConfig(BaseModel):
    """HTTP server binding."""

    host: str = Field(default="127.0.0.1", description="Interface to bind")
    port: int = Field(default=8400, gt=0, lt=65536, description="Port to listen on")


class AppConfig(BaseModel):
    """Top-level configuration loaded from defaults.toml."""

    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
