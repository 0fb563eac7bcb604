from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

DEFAULT_MARKER = "tsconfig.json"


@dataclass(frozen=True)
class ProjectRoot:
    path: Path
    name: str

    @classmethod
    def from_dir(cls, directory: Path) -> "ProjectRoot":
        return cls(path=directory, name=directory.name)


def locate(file_path: Union[str, Path], marker: str = DEFAULT_MARKER) -> Optional[ProjectRoot]:
    """
    Walks up from the file's parent directory looking for the project marker.
    The nearest directory holding it wins. Directories that no longer exist
    are skipped rather than treated as an error.
    """
    path = Path(file_path).absolute()

    for candidate in path.parents:
        try:
            if not candidate.is_dir():
                continue
            if (candidate / marker).is_file():
                return ProjectRoot.from_dir(candidate)
        except OSError:
            # Unreadable directory (permissions, stale mount): keep walking up
            continue

    return None
