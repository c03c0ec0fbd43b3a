"""Ingestion layer.

Adapters that turn raw feed and document-store payloads into validated
domain objects. Only the hub's position cache stores the results.
"""

__all__: list[str] = []
