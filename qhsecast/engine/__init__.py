"""
QHSECast Engine — per-entity and population analysis.

Components:
- values: tolerant numeric parsing of entity attributes
- factors: threshold assessment of weighted module factors
- rules: declarative rule objects, registry and isolated evaluation
- scoring: weighted score aggregation and risk classification
- changes: snapshot diff and cross-module impact propagation
- population: patterns, correlations, predictions, system health
- confidence: bounded heuristic confidence blend
- intelligence: orchestrator exposing the async operations
"""
