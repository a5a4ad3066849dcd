"""
Unité de perte - Agrégateur terminal.

Même mécanique avant que le neurone (somme pondérée + activation), plus un
canal "Error" qui livre la valeur cible. Quand toutes les entrées ET la
cible sont arrivées (dans n'importe quel ordre, sur n'importe quel nombre
de pas), l'unité calcule la perte et l'émet après un délai fixe.

    WaitingForInput → CalculatingLoss → WaitingForInput
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set, Union

import numpy as np

from .atomic import INFINITY, Atomic, AtomicState, check_count
from .errors import ConfigurationError
from .functions import ActivationKind, LossKind, activate, compute_loss
from .ports import Port

logger = logging.getLogger(__name__)


class LossPhase(Enum):
    """Phase de l'unité de perte."""
    WAITING_FOR_INPUT = "WaitingForInput"
    CALCULATING_LOSS = "CalculatingLoss"


@dataclass
class LossConfig:
    """Configuration d'une unité de perte.

    Attributes:
        bias: Entrée constante associée au dernier poids
        output_delay: Délai avant l'émission de la perte (> 0)
    """
    bias: float = 1.0
    output_delay: float = 1.0

    def __post_init__(self):
        if not 0 < self.output_delay < INFINITY:
            raise ConfigurationError(f"output_delay doit être > 0 et fini: {self.output_delay}")
        if not math.isfinite(self.bias):
            raise ConfigurationError(f"bias doit être fini: {self.bias}")


@dataclass
class LossState(AtomicState):
    """État interne de l'unité de perte.

    Attributes:
        phase: Phase courante
        activation_kind: Non-linéarité appliquée à la somme pondérée
        loss_kind: Métrique (log-loss par défaut)
        weighted_sum: Somme pondérée courante
        prediction: Sortie activée du dernier cycle
        target: Cible du cycle (moyenne des valeurs reçues sur "Error")
        loss_value: Dernière perte calculée
        inputs_received: Canaux d'entrée distincts ayant livré
        target_received: Vrai si la cible du cycle est arrivée
        weights: Un poids par entrée + le poids de biais
    """
    kind = "Loss"

    phase: LossPhase = LossPhase.WAITING_FOR_INPUT
    activation_kind: ActivationKind = ActivationKind.SIGMOID
    loss_kind: LossKind = LossKind.LOG_LOSS
    weighted_sum: float = 0.0
    prediction: float = 0.0
    target: float = 0.0
    loss_value: float = 0.0
    inputs_received: int = 0
    target_received: bool = False
    weights: np.ndarray = field(default_factory=lambda: np.zeros(0))


class LossUnit(Atomic[LossState]):
    """Unité de perte pilotée par événements.

    Ports:
        Input0..Input{n-1}: entrées (pondérées)
        Error: valeur cible
        Output: perte
    """

    def __init__(
        self,
        name: str,
        num_inputs: int,
        activation_kind: Union[ActivationKind, str] = ActivationKind.SIGMOID,
        loss_kind: Union[LossKind, str] = LossKind.LOG_LOSS,
        config: Optional[LossConfig] = None,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
    ):
        """Initialise l'unité de perte.

        Args:
            name: Identifiant
            num_inputs: Nombre de canaux d'entrée (>= 1)
            activation_kind: "sigmoid" ou "relu"
            loss_kind: "log_loss" ou "mse"
            config: Paramètres (défaut: LossConfig())
            rng: Générateur numpy pour les poids
            seed: Graine, utilisée si rng n'est pas fourni

        Raises:
            ConfigurationError: Si un paramètre est invalide
        """
        num_inputs = check_count(num_inputs, 1, "num_inputs")
        activation_kind = ActivationKind.parse(activation_kind)
        loss_kind = LossKind.parse(loss_kind)
        self.config = config or LossConfig()

        if rng is None:
            rng = np.random.default_rng(seed)

        super().__init__(
            name,
            LossState(
                activation_kind=activation_kind,
                loss_kind=loss_kind,
                weights=rng.random(num_inputs + 1),
            ),
        )

        self.inputs: List[Port] = [self.add_in_port(f"Input{i}") for i in range(num_inputs)]
        self.error = self.add_in_port("Error")
        self.output_port = self.add_out_port("Output")

        self._reported: Set[int] = set()
        self._reset()

    @property
    def num_inputs(self) -> int:
        return len(self.inputs)

    def external_transition(self, e: float):
        """Accumule entrées et cible; déclenche le calcul quand tout est là."""
        self._check_elapsed(e)
        if not self.has_input():
            self._consume_elapsed(e)
            return
        if self.state.phase != LossPhase.WAITING_FOR_INPUT:
            self._protocol_violation(f"entrée reçue en phase {self.state.phase.value}")

        state = self.state
        for i, port in enumerate(self.inputs):
            if port.empty():
                continue
            if i not in self._reported:
                self._reported.add(i)
                state.inputs_received += 1
            for x in port.get_bag():
                state.weighted_sum += float(state.weights[i] * x)

        if not self.error.empty():
            if state.target_received:
                self._protocol_violation("cible reçue deux fois dans le même cycle")
            state.target = float(np.mean(self.error.get_bag()))
            state.target_received = True

        if state.inputs_received == self.num_inputs and state.target_received:
            state.prediction = activate(state.activation_kind, state.weighted_sum)
            state.loss_value = compute_loss(state.loss_kind, state.prediction, state.target)
            self._enter(LossPhase.CALCULATING_LOSS, self.config.output_delay)

    def internal_transition(self):
        if self.state.phase != LossPhase.CALCULATING_LOSS:
            self._protocol_violation(f"transition interne en phase {self.state.phase.value}")
        self._reset()

    def output(self):
        if self.state.phase == LossPhase.CALCULATING_LOSS:
            self.output_port.add_message(self.state.loss_value)

    def _reset(self):
        self.state.weighted_sum = float(self.config.bias * self.state.weights[-1])
        self.state.inputs_received = 0
        self.state.target_received = False
        self._reported.clear()
        self._enter(LossPhase.WAITING_FOR_INPUT, INFINITY)

    def _enter(self, phase: LossPhase, sigma: float):
        logger.debug("%s: %s -> %s (sigma=%s)", self.name, self.state.phase.value, phase.value, sigma)
        self.state.phase = phase
        self.state.sigma = sigma
