import colorama
from colorama import Fore, Style

colorama.init(autoreset=True)


def sanitize_filename(name: str) -> str:
    """Return a filesystem-safe version of ``name``."""
    return ''.join(char if char.isalnum() or char in '._-' else '_' for char in name)


def escape_filter_path(path: str) -> str:
    """Normalise separators and escape drive colons for ffmpeg filter paths."""
    return str(path).replace('\\', '/').replace(':', '\\:')


__all__ = ["Fore", "Style", "sanitize_filename", "escape_filter_path"]
