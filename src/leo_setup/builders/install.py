"""Install a built binary into its destination directory."""

from __future__ import annotations

import shutil
from pathlib import Path

from leo_setup.builders.base import BuildArtifact
from leo_setup.errors import BuildError


def install_artifact(artifact: BuildArtifact, destination: Path) -> Path:
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(artifact.output_path, destination)
        destination.chmod(0o755)
    except OSError as exc:
        raise BuildError(
            "Unable to install the built binary.",
            context={
                "stage": "install",
                "source": str(artifact.output_path),
                "destination": str(destination),
            },
        ) from exc
    return destination
