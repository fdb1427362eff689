"""Cross-platform JS (React Native / Expo) project heuristic."""

from pathlib import Path
from typing import Optional

from apkbuilder.core.types import ProjectType
from apkbuilder.detector.fs import package_dependencies, read_json
from apkbuilder.detector.types import DetectionResult, ScoreCard

RUNTIME_MARKER = "react-native"
MANAGED_BUILD_MARKER = "expo"
COMMUNITY_PREFIXES = ("@react-native-community/", "react-native-")

WEIGHT_RUNTIME = 50
WEIGHT_MANAGED_BUILD = 40
WEIGHT_PER_COMMUNITY_PACKAGE = 5
MAX_COMMUNITY_WEIGHT = 20
WEIGHT_ANDROID_DIR = 15
WEIGHT_ANDROID_GRADLE = 10

# Config files and their weights, in the order they are checked.
CONFIG_FILES: tuple[tuple[str, int], ...] = (
    ("app.json", 10),
    ("app.config.js", 10),
    ("metro.config.js", 5),
    ("eas.json", 10),
)


def has_managed_build_marker(project_dir: Path) -> bool:
    """True when package.json lists expo as a dependency."""
    pkg = read_json(Path(project_dir) / "package.json")
    return pkg is not None and MANAGED_BUILD_MARKER in package_dependencies(pkg)


def detect(root: Path) -> Optional[DetectionResult]:
    root = Path(root)
    pkg_path = root / "package.json"
    if not pkg_path.exists():
        return None
    pkg = read_json(pkg_path)
    if pkg is None:
        return None

    card = ScoreCard(ProjectType.CROSS_JS)
    deps = package_dependencies(pkg)

    if RUNTIME_MARKER in deps:
        card.add(WEIGHT_RUNTIME, pkg_path)
    if MANAGED_BUILD_MARKER in deps:
        card.add(WEIGHT_MANAGED_BUILD, pkg_path)

    community = [name for name in deps if name.startswith(COMMUNITY_PREFIXES)]
    if community:
        card.add(min(len(community) * WEIGHT_PER_COMMUNITY_PACKAGE, MAX_COMMUNITY_WEIGHT))

    # Directory layout alone never makes a cross-js project.
    if card.score == 0:
        return None

    android = root / "android"
    if android.is_dir():
        card.add(WEIGHT_ANDROID_DIR)
        if (android / "build.gradle").exists() or (android / "build.gradle.kts").exists():
            card.add(WEIGHT_ANDROID_GRADLE)

    for name, weight in CONFIG_FILES:
        path = root / name
        if path.exists():
            card.add(weight, path)

    return card.result()
