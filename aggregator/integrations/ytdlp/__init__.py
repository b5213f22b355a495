from .download import YtDlpDownloader

__all__ = ["YtDlpDownloader"]
