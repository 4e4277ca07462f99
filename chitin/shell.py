"""Zsh integration installer."""

from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Optional

DATA_DIR = Path.home() / ".local" / "share" / "chitin"
ZSHRC_PATH = Path.home() / ".zshrc"
SCRIPT_NAME = "chitin.zsh"


@dataclass
class InstallResult:
    script_path: Path
    zshrc_path: Path
    zshrc_created: bool = False
    source_line_added: bool = False


def plugin_script() -> str:
    """Contents of the bundled zsh widget."""
    return resources.files("chitin").joinpath("data").joinpath(SCRIPT_NAME).read_text(encoding="utf-8")


def install(data_dir: Optional[Path] = None, zshrc_path: Optional[Path] = None) -> InstallResult:
    """
    Install the zsh widget and source it from ~/.zshrc.

    The script is always rewritten so upgrades take effect; the source line
    is only appended once.
    """
    data_dir = data_dir or DATA_DIR
    zshrc_path = zshrc_path or ZSHRC_PATH

    data_dir.mkdir(parents=True, exist_ok=True)
    script_path = data_dir / SCRIPT_NAME
    script_path.write_text(plugin_script(), encoding="utf-8")

    result = InstallResult(script_path=script_path, zshrc_path=zshrc_path)

    if not zshrc_path.exists():
        zshrc_path.touch()
        result.zshrc_created = True

    source_line = f'source "{script_path}"'
    if source_line in zshrc_path.read_text(encoding="utf-8"):
        return result

    with open(zshrc_path, "a", encoding="utf-8") as f:
        f.write("\n# Chitin Shell Integration\n")
        f.write(f"{source_line}\n")
    result.source_line_added = True
    return result
