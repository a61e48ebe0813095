"""
Infrastructure for the hobo economy.

Configuration, logging, Redis connections, the event bus and the durable
storage backends used by the snapshot store.
"""
