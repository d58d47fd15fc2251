"""
Services Package

Long-lived relay components:
- SubscriberRegistry: connected subscribers and best-effort fan-out
- RelayServer: upstream feed -> transformer -> cache -> broadcast
"""
