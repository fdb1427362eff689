"""Web (HTML/CSS/JS) project heuristic.

Signals:
  index.html in root, public/, src/ or dist/   +40 (first match only)
  package.json without a cross-platform marker +20
  first known web framework dependency         +15
  any .html / stylesheet / script file         +10 / +5 / +5
  each conventional web directory present      +2

A package.json listing react-native or expo means the project belongs to
the cross-js heuristic, so this one yields.
"""

import logging
from pathlib import Path
from typing import Optional

from apkbuilder.core.types import ProjectType
from apkbuilder.detector.fs import (
    first_existing,
    package_dependencies,
    read_json,
    walk_files,
)
from apkbuilder.detector.types import DetectionResult, ScoreCard

logger = logging.getLogger(__name__)

INDEX_LOCATIONS = ("index.html", "public/index.html", "src/index.html", "dist/index.html")
CROSS_JS_MARKERS = ("react-native", "expo")
WEB_FRAMEWORKS = ("vue", "react", "angular", "svelte", "solid-js", "preact")
WEB_DIRS = ("public", "static", "assets", "src", "dist", "build")

HTML_SUFFIXES = (".html",)
STYLE_SUFFIXES = (".css", ".scss", ".less")
SCRIPT_SUFFIXES = (".js", ".ts", ".jsx", ".tsx")

WEIGHT_INDEX = 40
WEIGHT_PACKAGE_JSON = 20
WEIGHT_FRAMEWORK = 15
WEIGHT_HTML = 10
WEIGHT_STYLE = 5
WEIGHT_SCRIPT = 5
WEIGHT_WEB_DIR = 2


def detect(root: Path) -> Optional[DetectionResult]:
    root = Path(root)
    card = ScoreCard(ProjectType.WEB)

    index = first_existing(root, INDEX_LOCATIONS)
    if index is not None:
        card.add(WEIGHT_INDEX, index)

    pkg_path = root / "package.json"
    if pkg_path.exists():
        pkg = read_json(pkg_path)
        if pkg is not None:
            deps = package_dependencies(pkg)
            if any(marker in deps for marker in CROSS_JS_MARKERS):
                logger.debug("package.json at %s carries a cross-platform marker", pkg_path)
                return None
            card.add(WEIGHT_PACKAGE_JSON, pkg_path)
            framework = next((fw for fw in WEB_FRAMEWORKS if fw in deps), None)
            if framework:
                card.add(WEIGHT_FRAMEWORK)

    seen_html = seen_style = seen_script = False
    for path in walk_files(root):
        name = path.name.lower()
        seen_html = seen_html or name.endswith(HTML_SUFFIXES)
        seen_style = seen_style or name.endswith(STYLE_SUFFIXES)
        seen_script = seen_script or name.endswith(SCRIPT_SUFFIXES)
        if seen_html and seen_style and seen_script:
            break

    if seen_html:
        card.add(WEIGHT_HTML)
    if seen_style:
        card.add(WEIGHT_STYLE)
    if seen_script:
        card.add(WEIGHT_SCRIPT)

    for name in WEB_DIRS:
        if (root / name).is_dir():
            card.add(WEIGHT_WEB_DIR)

    return card.result()
