"""
AtomicNeurons - Neurones artificiels comme modèles atomiques DEVS.

Chaque unité est une machine à phases temporisée qui réagit aux messages
reçus sur ses ports, accumule des calculs partiels et émet ses résultats
après un délai fixe. Le moteur de simulation est fourni par l'hôte.
"""

__all__ = [
    # Erreurs
    "AtomicNeuronsError",
    "ConfigurationError",
    "InvalidPhaseError",
    # Contrat DEVS
    "Port",
    "Atomic",
    "AtomicState",
    "INFINITY",
    # Fonctions
    "ActivationKind",
    "LossKind",
    "activate",
    "activation_derivative",
    "compute_loss",
    "loss_gradient",
    # Neurone
    "Neuron",
    "NeuronConfig",
    "NeuronPhase",
    "NeuronState",
    # Unité de perte
    "LossUnit",
    "LossConfig",
    "LossPhase",
    "LossState",
    # Coordination
    "Coordinator",
    "AtomicDriver",
    "Emission",
]

from .errors import AtomicNeuronsError, ConfigurationError, InvalidPhaseError
from .ports import Port
from .atomic import Atomic, AtomicState, INFINITY
from .functions import ActivationKind, LossKind, activate, activation_derivative, compute_loss, loss_gradient
from .neuron import Neuron, NeuronConfig, NeuronPhase, NeuronState
from .loss import LossUnit, LossConfig, LossPhase, LossState
from .driver import Coordinator, AtomicDriver, Emission
