"""
Exchange Connectors Package

This package contains upstream exchange connector modules.
Each exchange has its own subfolder with:
- ws_client.py: WebSocket streaming logic

Only Binance is wired into the relay today; the transformer in core/ is the
single place that knows its event schema.
"""
