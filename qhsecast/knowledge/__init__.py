"""
QHSECast Knowledge — static configuration supplied at construction time.

Components:
- schemas: Factor definitions, thresholds, module connections, reference library
- catalog: Default QHSE module tables
- base: KnowledgeBase lookup facade (fails fast on unknown modules)
"""
