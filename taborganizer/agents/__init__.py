"""Classification and grouping agents."""
from .tab_classifier_agent import TabClassifierAgent
from .heuristic_classifier import HeuristicClassifier
from .categorization_resolver import CategorizationResolver
from .tab_group_reconciler import TabGroupReconciler

__all__ = [
    "TabClassifierAgent",
    "HeuristicClassifier",
    "CategorizationResolver",
    "TabGroupReconciler",
]
