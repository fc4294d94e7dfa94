import os
import sys
from pathlib import Path
from dataclasses import dataclass

# Lil helper function to create missing directories if missing, and optionally error out when a path
# doesn't exist.
def ensure_directory(path: Path,must_exist=False):
    if must_exist:
        if not path.exists():
            raise FileNotFoundError(f"Required directory is missing: {path}")
        if not path.is_dir():
            raise NotADirectoryError(f"Expected a directory, got a file: {path}")
    else:
        path.mkdir(parents=True,exist_ok=True)
    return path

# Resolves the base folder that holds all user-specific StudyTrack data. STUDYTRACK_HOME wins outright, otherwise
# we go with the platform's usual per-user data location.
def resolve_data_root() -> Path:
    override = os.getenv("STUDYTRACK_HOME")
    if override:
        return Path(override)
    if os.name == "nt":
        base = os.getenv("APPDATA") or os.getenv("LOCALAPPDATA") or os.path.expanduser("~\\AppData\\Roaming")
    elif sys.platform == "darwin":
        base = os.path.expanduser("~/Library/Application Support")
    else:
        base = os.getenv("XDG_DATA_HOME") or os.path.expanduser("~/.local/share")
    return Path(base) / "StudyTrack"

# Dataclass for accessing paths across program.
@dataclass(frozen=False)
class ProjectPaths:

    root: Path
    data: Path

    logs: Path
    settings: Path

    @staticmethod
    def build():
        # Folder for the install itself, no user-specific files.
        if getattr(sys, "frozen", False):
            root = Path(sys.executable).resolve().parent
        else:
            root = Path(__file__).resolve().parents[2]

        data = ensure_directory(resolve_data_root())
        logs = ensure_directory(data / "logs")

        return ProjectPaths(
            root = root,
            data = data,
            logs = logs,
            settings = data / "settings.json",
        )
PATHS = ProjectPaths.build()
