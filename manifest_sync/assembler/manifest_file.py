"""manifest.json and package.json file handling."""
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


class ManifestFile:
    """Read and atomically rewrite a plugin's manifest.json."""

    def __init__(self, manifest_path: str | Path):
        """Initialize manifest file.

        Args:
            manifest_path: Path to manifest.json
        """
        self.manifest_path = Path(manifest_path)

    def read(self) -> Dict[str, Any]:
        """Read manifest from disk.

        A missing file reads as an empty manifest.

        Returns:
            Manifest dictionary

        Raises:
            ValueError: If the file exists but is not a JSON object
        """
        if not self.manifest_path.exists():
            return {}

        try:
            with open(self.manifest_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (IOError, json.JSONDecodeError) as e:
            raise ValueError(f"Cannot read manifest {self.manifest_path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Manifest {self.manifest_path} must contain a JSON object")
        return data

    def write(self, data: Dict[str, Any]):
        """Write manifest to disk atomically.

        Args:
            data: Manifest dictionary to write
        """
        self.manifest_path.parent.mkdir(parents=True, exist_ok=True)

        # Write to temp file first for atomic operation
        temp_path = self.manifest_path.with_suffix('.tmp')
        with open(temp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write('\n')

        # Atomic rename
        temp_path.replace(self.manifest_path)


def read_package_json(project_root: str | Path) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """Read the plugin's package.json.

    Returns:
        (package data, None), or (None, warning) when missing or unreadable
    """
    package_path = Path(project_root) / 'package.json'
    try:
        with open(package_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (IOError, json.JSONDecodeError) as e:
        return None, f"Could not read package.json: {e}"

    if not isinstance(data, dict):
        return None, "Could not read package.json: expected a JSON object"
    return data, None
