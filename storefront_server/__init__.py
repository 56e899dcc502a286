"""Storefront MCP server: catalog, cart, vouchers and checkout."""

__version__ = "0.1.0"
