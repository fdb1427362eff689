"""Launcher icon generation with Pillow.

Writes ic_launcher.png and ic_launcher_round.png for every density bucket,
plus adaptive-icon foregrounds and the anydpi-v26 XML that references them.
"""

import logging
from pathlib import Path
from typing import Optional

from PIL import Image, ImageChops, ImageDraw, ImageFont, ImageOps, UnidentifiedImageError

from apkbuilder.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

ICON_SIZES: dict[str, int] = {
    "mipmap-mdpi": 48,
    "mipmap-hdpi": 72,
    "mipmap-xhdpi": 96,
    "mipmap-xxhdpi": 144,
    "mipmap-xxxhdpi": 192,
}

ADAPTIVE_ICON_SIZES: dict[str, int] = {
    "mipmap-mdpi": 108,
    "mipmap-hdpi": 162,
    "mipmap-xhdpi": 216,
    "mipmap-xxhdpi": 324,
    "mipmap-xxxhdpi": 432,
}

# Share of the adaptive canvas the artwork may occupy (launcher safe zone).
ADAPTIVE_SAFE_ZONE = 0.66

BACKGROUND_COLOR = "#FFFFFF"
DEFAULT_ICON_SIZE = 512
DEFAULT_GRADIENT = ((0x66, 0x7E, 0xEA), (0x76, 0x4B, 0xA2))

ADAPTIVE_ICON_XML = """<?xml version="1.0" encoding="utf-8"?>
<adaptive-icon xmlns:android="http://schemas.android.com/apk/res/android">
    <background android:drawable="@color/ic_launcher_background"/>
    <foreground android:drawable="@mipmap/ic_launcher_foreground"/>
</adaptive-icon>
"""


def _open_source(source_path: Path) -> Image.Image:
    if not source_path.exists():
        raise ConfigurationError(f"Icon image not found: {source_path}")
    try:
        with Image.open(source_path) as img:
            img.load()
            return img.convert("RGBA")
    except (UnidentifiedImageError, OSError) as exc:
        raise ConfigurationError(f"Cannot read icon image {source_path}: {exc}") from exc


def _round(img: Image.Image) -> Image.Image:
    mask = Image.new("L", img.size, 0)
    ImageDraw.Draw(mask).ellipse((0, 0, img.size[0] - 1, img.size[1] - 1), fill=255)
    rounded = img.copy()
    alpha = Image.composite(rounded.getchannel("A"), mask, mask)
    rounded.putalpha(alpha)
    return rounded


def _adaptive_foreground(img: Image.Image, size: int) -> Image.Image:
    inner = int(size * ADAPTIVE_SAFE_ZONE)
    art = ImageOps.contain(img, (inner, inner), Image.Resampling.LANCZOS)
    canvas = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    canvas.paste(art, ((size - art.size[0]) // 2, (size - art.size[1]) // 2), art)
    return canvas


def generate_icons(source_path: Path, res_dir: Path, adaptive: bool = True) -> list[Path]:
    """Render every launcher icon from `source_path` into `res_dir`.

    Args:
        source_path: Any image Pillow can read.
        res_dir: The Android `res/` directory.
        adaptive: Also write adaptive-icon foregrounds and XML.

    Returns:
        The written files.

    Raises:
        ConfigurationError: if the source image is missing or unreadable.
    """
    source_path = Path(source_path)
    source = _open_source(source_path)
    logger.info("Generating icons from %s", source_path)
    return _write_icons(source, Path(res_dir), adaptive)


def _write_icons(source: Image.Image, res_dir: Path, adaptive: bool) -> list[Path]:
    written: list[Path] = []
    for density, size in ICON_SIZES.items():
        out_dir = res_dir / density
        out_dir.mkdir(parents=True, exist_ok=True)
        square = ImageOps.fit(source, (size, size), Image.Resampling.LANCZOS)
        square.save(out_dir / "ic_launcher.png", format="PNG")
        _round(square).save(out_dir / "ic_launcher_round.png", format="PNG")
        written.extend([out_dir / "ic_launcher.png", out_dir / "ic_launcher_round.png"])
        logger.debug("Icon %s (%dx%d)", density, size, size)

    if adaptive:
        written.extend(_generate_adaptive_icons(source, res_dir))
    return written


def _generate_adaptive_icons(source: Image.Image, res_dir: Path) -> list[Path]:
    written: list[Path] = []
    for density, size in ADAPTIVE_ICON_SIZES.items():
        out_dir = res_dir / density
        out_dir.mkdir(parents=True, exist_ok=True)
        target = out_dir / "ic_launcher_foreground.png"
        _adaptive_foreground(source, size).save(target, format="PNG")
        written.append(target)

    anydpi = res_dir / "mipmap-anydpi-v26"
    anydpi.mkdir(parents=True, exist_ok=True)
    for name in ("ic_launcher.xml", "ic_launcher_round.xml"):
        (anydpi / name).write_text(ADAPTIVE_ICON_XML, encoding="utf-8", newline="\n")
        written.append(anydpi / name)

    values = res_dir / "values"
    values.mkdir(parents=True, exist_ok=True)
    colors = values / "ic_launcher_background.xml"
    colors.write_text(
        '<?xml version="1.0" encoding="utf-8"?>\n<resources>\n'
        f'    <color name="ic_launcher_background">{BACKGROUND_COLOR}</color>\n'
        "</resources>\n",
        encoding="utf-8",
        newline="\n",
    )
    written.append(colors)
    logger.info("Adaptive icons written")
    return written


def render_default_icon(letter: str = "A", size: int = DEFAULT_ICON_SIZE) -> Image.Image:
    """Diagonal gradient rounded square with a single centred letter."""
    start, end = DEFAULT_GRADIENT
    vertical = Image.linear_gradient("L").resize((size, size))
    horizontal = vertical.transpose(Image.Transpose.TRANSPOSE)
    diagonal = ImageChops.add(vertical, horizontal, scale=2.0)
    gradient = Image.composite(
        Image.new("RGBA", (size, size), (*end, 255)),
        Image.new("RGBA", (size, size), (*start, 255)),
        diagonal,
    )

    mask = Image.new("L", (size, size), 0)
    ImageDraw.Draw(mask).rounded_rectangle((0, 0, size - 1, size - 1), radius=size // 5, fill=255)
    icon = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    icon.paste(gradient, (0, 0), mask)

    draw = ImageDraw.Draw(icon)
    font = ImageFont.load_default(size=size * 2 // 5)
    draw.text((size / 2, size * 0.55), letter[:1].upper() or "A", fill="white", font=font, anchor="mm")
    return icon


def generate_default_icon(res_dir: Path, letter: str = "A") -> list[Path]:
    """Render the placeholder in memory and derive every size from it."""
    written = _write_icons(render_default_icon(letter), Path(res_dir), adaptive=True)
    logger.info("Default icon generated")
    return written


def icon_letter(app_name: Optional[str]) -> str:
    for ch in app_name or "":
        if ch.isalnum():
            return ch.upper()
    return "A"
