# src/paradise/core/utils/path_utils.py
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class PathUtils:
    """
    A central utility for reliably retrieving important project paths.
    """

    # --- Package specific paths

    @staticmethod
    def get_package_root() -> Path:
        """Returns the directory of the 'paradise' package (holds settings.json)."""
        return Path(__file__).resolve().parents[2]

    @staticmethod
    def get_settings_file() -> Path:
        return PathUtils.get_package_root() / "settings.json"

    # --- Project specific paths

    @staticmethod
    def get_project_root() -> Path:
        """
        Returns the absolute path of the project root.
        Searches upwards for a directory containing 'src' and 'pyproject.toml',
        and falls back to the current working directory for installed copies.
        """
        current_path = Path(__file__).resolve().parent
        while current_path != current_path.parent:
            src_dir = current_path / "src"
            pyproject_toml = current_path / "pyproject.toml"
            if src_dir.is_dir() and pyproject_toml.is_file():
                return current_path
            current_path = current_path.parent
        logger.debug("No project root found above %s, using the working directory.", Path(__file__).parent)
        return Path.cwd()

    @staticmethod
    def get_reports_dir(dirname: str = ".paradise_reports") -> Path:
        """
        Returns the default directory for exported reports, in the PROJECT ROOT.
        Creates the directory if it doesn't exist.
        """
        path = PathUtils.get_project_root() / dirname
        path.mkdir(parents=True, exist_ok=True)
        return path
