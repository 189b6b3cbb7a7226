"""
QHSECast Services.

Components:
- store: TTL result cache and bounded history log
- registry: lazily-created shared engine
"""
