"""Custom exception hierarchy for the citation graph builder."""


class CiteGraphError(Exception):
    """Base exception for citation graph errors."""


class ConfigError(CiteGraphError):
    """Raised when configuration is invalid or incomplete."""


class AcquisitionError(CiteGraphError):
    """Raised when acquiring or downloading a document fails."""


class ParseError(CiteGraphError):
    """Raised when a structured document cannot be parsed at all."""


class ExtractionError(CiteGraphError):
    """Raised when a paper cannot be turned into metadata."""
