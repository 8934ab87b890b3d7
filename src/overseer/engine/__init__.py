"""Adjudication, supervision and scope-creep decision logic."""

from overseer.engine.adjudication import VerdictThresholds, adjudicate, score_to_verdict
from overseer.engine.scope_creep import CreepLedger, ScopeCreepClassifier, classify
from overseer.engine.service import DecisionEngine
from overseer.engine.supervision import EventWeightCatalog, SupervisionAccumulator
from overseer.engine.weights import ResolvedProfile, WeightProfileResolver

__all__ = [
    "CreepLedger",
    "DecisionEngine",
    "EventWeightCatalog",
    "ResolvedProfile",
    "ScopeCreepClassifier",
    "SupervisionAccumulator",
    "VerdictThresholds",
    "WeightProfileResolver",
    "adjudicate",
    "classify",
    "score_to_verdict",
]
