"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, Field, field_validator

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Platform quality code -> display label
QUALITY_MAP = {
    16: "360P",
    32: "480P",
    64: "720P",
    74: "720P60",
    80: "1080P",
    112: "1080P+",
    116: "1080P60",
    120: "4K",
    125: "HDR",
    126: "DolbyVision",
    127: "8K",
}

# Catalog display order, best first
QUALITY_PREFERENCE = [127, 125, 126, 120, 116, 112, 80, 74, 64, 32, 16]


def get_quality_description(quality: int) -> str:
    """Gets the display label for a quality code, e.g. 80 -> '1080P'."""
    return QUALITY_MAP.get(quality, f"Q{quality}")


def quality_from_height(height: int) -> int:
    """Infers a quality code from a video track's pixel height."""
    if height >= 2160:
        return 120
    if height >= 1080:
        return 80
    if height >= 720:
        return 64
    if height >= 480:
        return 32
    return 16


class FetchConfig(BaseModel):
    """A validated configuration model for the application."""

    # Output
    output_dir: str = "./downloads"
    quality: int = 0  # 0 selects automatically

    # Accounts
    cookie_dir: str = "./cookies"
    default_account: str = ""

    # Browser pool
    pool_size: int = 2
    checkout_timeout: float = 30.0
    headless: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    viewport_width: int = 1920
    viewport_height: int = 1080

    # Network
    api_timeout: float = 60.0
    audio_timeout: float = 600.0
    video_timeout: float = 1800.0

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("quality")
    @classmethod
    def validate_quality(cls, v: int) -> int:
        """
        Ensures quality is 0 (automatic) or a positive code. Codes the platform
        does not define are kept; stream resolution falls back from them.
        """
        if v < 0:
            raise ValueError("Quality must be 0 (auto) or a positive quality code.")
        return v

    @field_validator("pool_size")
    @classmethod
    def validate_pool_size(cls, v: int) -> int:
        """Ensures a reasonable number of browser instances."""
        if v < 1 or v > 8:
            raise ValueError("Pool size must be between 1 and 8.")
        return v

    @field_validator(
        "checkout_timeout", "api_timeout", "audio_timeout", "video_timeout"
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be positive.")
        return v

    @field_validator("output_dir", "cookie_dir")
    @classmethod
    def validate_directory(cls, v: str) -> str:
        if not v:
            raise ValueError("Directory settings cannot be empty.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
