"""Application composition layer.

Controllers in this package wire adapters, use cases, and view models into
the running auth lifecycle without placing business logic in the UI.
"""
