"""Thin forward proxy built on the rewriter engine."""

from httpsify.proxy.server import ProxyHandler, ProxyServer, serve

__all__ = ["ProxyHandler", "ProxyServer", "serve"]
