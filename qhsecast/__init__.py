"""
QHSECast — QHSE recommendation and risk-scoring engine.

Architecture:
    qhsecast/
    ├── knowledge/       # Module factor tables, connections, reference library
    ├── engine/          # Factors, rules, scoring, changes, population, confidence
    ├── services/        # Result store (TTL cache + history), service registry
    ├── session.py       # Debounced per-module analysis driver
    ├── config.py        # pydantic-settings (QHSE_ env prefix)
    ├── errors.py        # QHSECastError hierarchy
    └── logging_config.py

Module Boundaries:
    - Entities are read-only inputs; the engine never persists them
    - Every score traces to factor levels and weights in the knowledge base
    - Rules are registered objects, never executable config
    - Confidence is a bounded heuristic blend, not a probability

Data Flow:
    Entity → Factor Evaluator ─┐
           → Rule Engine ──────┼→ Score / Risk → Actions → Confidence → Store
    Population → Population Analyzer → System Insights

Version: 1.0.0
"""

__version__ = "1.0.0"
