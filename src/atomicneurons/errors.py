"""
Erreurs des modèles atomiques.

Deux familles d'erreurs, toutes deux fatales:
- ConfigurationError: paramètres de construction invalides
- InvalidPhaseError: transition invoquée dans une phase qui ne la prévoit pas
"""

from __future__ import annotations


class AtomicNeuronsError(Exception):
    """Classe de base des erreurs du paquet."""


class ConfigurationError(AtomicNeuronsError, ValueError):
    """Paramètres de construction invalides (fan-in, fonction inconnue...)."""


class InvalidPhaseError(AtomicNeuronsError, RuntimeError):
    """Violation du protocole de simulation.

    Levée quand une transition interne ou externe arrive dans une phase
    qui n'a pas de réaction définie.

    Attributes:
        model_name: Nom du modèle concerné
        phase: Phase courante au moment de l'erreur
    """

    def __init__(self, message: str, model_name: str = "", phase: object = None):
        super().__init__(message)
        self.model_name = model_name
        self.phase = phase
