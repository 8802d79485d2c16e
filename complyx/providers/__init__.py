"""Concrete adapters behind the ``complyx.interfaces`` contracts."""
