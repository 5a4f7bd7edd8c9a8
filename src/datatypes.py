"""Configuration dataclasses for the email slicer."""
from dataclasses import dataclass, field

DEFAULT_FOOTER_HTML = (
    "You are receiving this email because you subscribed to our updates. "
    '<a href="{{unsubscribe_url}}" style="color:#666666;">Unsubscribe</a>'
)


@dataclass
class SlicerConfig:
    """Region generation limits and naming of generated artifacts."""

    max_regions: int = 100
    name_prefix: str = "slice"
    name_digits: int = 3
    group_name: str = "__EMAIL_SLICES__"


@dataclass
class ExportConfig:
    """Rasterisation settings for each exported slice."""

    format: str = "jpg"
    scale: float = 1.0
    jpeg_quality: int = 90
    position_tolerance: float = 2.0


@dataclass
class TemplateConfig:
    """HTML email template presentation."""

    content_width: int = 600
    title: str = ""
    background_color: str = "#ffffff"
    footer_html: str = DEFAULT_FOOTER_HTML
    image_dir: str = "images"


@dataclass
class PackageConfig:
    """ZIP packaging of the exported HTML and images."""

    output_dir: str = "dist"
    html_filename: str = "index.html"


@dataclass
class CLIConfig:
    """CLI presentation controls."""

    emit_json_tail: bool = True


@dataclass
class AppConfig:
    """Top-level configuration aggregated from the user's TOML file."""

    slicer: SlicerConfig = field(default_factory=SlicerConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    template: TemplateConfig = field(default_factory=TemplateConfig)
    package: PackageConfig = field(default_factory=PackageConfig)
    cli: CLIConfig = field(default_factory=CLIConfig)
