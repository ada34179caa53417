"""
Per-entity reducer modules. Each exposes a HANDLERS table mapping event
type -> handler(doc, event) -> doc. The registry merges them.
"""
