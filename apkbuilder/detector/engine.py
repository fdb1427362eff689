"""Game-engine (Unity) project heuristic."""

from pathlib import Path
from typing import Optional

from apkbuilder.core.types import ProjectType
from apkbuilder.detector.fs import list_dir, read_json, walk_files
from apkbuilder.detector.types import DetectionResult, ScoreCard

SCENE_EVIDENCE_LIMIT = 3
CORE_MODULE = "com.unity.modules.core"

WEIGHT_PROJECT_SETTINGS = 40
WEIGHT_SETTINGS_ASSET = 20
WEIGHT_ASSETS = 25
WEIGHT_SCENES = 15
WEIGHT_PACKAGE_MANIFEST = 15
WEIGHT_CORE_MODULE = 10
WEIGHT_META = 10
WEIGHT_USER_SETTINGS = 5


def detect(root: Path) -> Optional[DetectionResult]:
    root = Path(root)
    card = ScoreCard(ProjectType.ENGINE)

    settings_dir = root / "ProjectSettings"
    if settings_dir.is_dir():
        card.add(WEIGHT_PROJECT_SETTINGS)
        asset = settings_dir / "ProjectSettings.asset"
        if asset.exists():
            card.add(WEIGHT_SETTINGS_ASSET, asset)

    assets_dir = root / "Assets"
    if assets_dir.is_dir():
        card.add(WEIGHT_ASSETS)
        scenes = [p for p in walk_files(assets_dir) if p.suffix.lower() == ".unity"]
        if scenes:
            card.add(WEIGHT_SCENES, *scenes[:SCENE_EVIDENCE_LIMIT])

    manifest = root / "Packages" / "manifest.json"
    if manifest.exists():
        card.add(WEIGHT_PACKAGE_MANIFEST, manifest)
        data = read_json(manifest)
        deps = data.get("dependencies") if data else None
        if isinstance(deps, dict) and CORE_MODULE in deps:
            card.add(WEIGHT_CORE_MODULE)

    if any(p.name.endswith(".meta") for p in list_dir(root)):
        card.add(WEIGHT_META)

    if (root / "UserSettings").is_dir():
        card.add(WEIGHT_USER_SETTINGS)

    return card.result()
