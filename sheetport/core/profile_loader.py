"""Import Profile Loader — loads saved ImportConfig YAML files."""

import logging

import yaml

from sheetport.core.config import settings
from sheetport.core.models import ImportConfig

logger = logging.getLogger(__name__)


def load_profile(profile_name: str) -> ImportConfig:
    """Load an import profile from the profiles directory.

    Looks for {profiles_dir}/{profile_name}.yaml
    """
    profile_path = settings.resolve_path(settings.profiles_dir) / f"{profile_name}.yaml"

    if not profile_path.exists():
        raise FileNotFoundError(f"Import profile not found: {profile_path}")

    with open(profile_path) as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Invalid profile format in {profile_path}: expected a YAML mapping")

    data.setdefault("locale", settings.default_locale)
    return ImportConfig(**data)


def list_profiles() -> list[str]:
    """List available profile names (without .yaml extension)."""
    profiles_dir = settings.resolve_path(settings.profiles_dir)
    if not profiles_dir.exists():
        return []
    return sorted(p.stem for p in profiles_dir.glob("*.yaml") if not p.stem.startswith("_"))
