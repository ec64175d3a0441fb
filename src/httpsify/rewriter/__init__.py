"""Text rewriter — URL finder, normalisation, in-place upgrades."""

from httpsify.rewriter.text import TextRewriter
from httpsify.rewriter.urls import FIND_URI_RE, normalise_url, with_scheme

__all__ = ["FIND_URI_RE", "TextRewriter", "normalise_url", "with_scheme"]
