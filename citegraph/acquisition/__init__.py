"""Document acquisition helpers."""

from .downloader import DownloadedPDF, DownloadError, PDFDownloader

__all__ = ["DownloadedPDF", "DownloadError", "PDFDownloader"]
