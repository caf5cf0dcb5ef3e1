from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExtractionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    player_url: str = Field(..., description="Absolute URL of the video player page.")

    @field_validator("player_url")
    def validate_player_url(cls, value: str):
        if not value.startswith("http"):
            raise ValueError("Invalid URL")
        return value


class ExtractionResult(BaseModel):
    manifest_url: Optional[str] = Field(None, description="The normalized manifest URL, or None when not found.")
    strategy: Optional[str] = Field(None, description="The detection strategy that produced the URL.")
    elapsed: float = Field(..., description="Wall-clock duration of the extraction in seconds.")

    @property
    def found(self) -> bool:
        return self.manifest_url is not None

    @property
    def elapsed_label(self) -> str:
        return f"{self.elapsed:.2f}s"
