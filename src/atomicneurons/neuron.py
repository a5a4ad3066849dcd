"""
Neurone atomique - Machine à phases temporisée.

Le neurone traverse un cycle fixe de quatre phases:

    ForwardPass → Activating → BackwardPass → Updating → ForwardPass

- ForwardPass: accumule w[i] * x sur chaque canal d'entrée jusqu'à ce que
  tous les canaux aient parlé, puis calcule l'activation
- Activating: émet la prédiction après un délai fixe
- BackwardPass: accumule le signal d'erreur venant de l'aval (ou la cible
  pour un neurone terminal)
- Updating: émet l'erreur vers l'amont, corrige les poids et repart

Un canal peut livrer plusieurs valeurs dans le même pas (bag): chacune
contribue indépendamment à la somme.
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
from .functions import (
    ActivationKind,
    LossKind,
    activate,
    activation_derivative,
    loss_gradient,
)
from .ports import Port

logger = logging.getLogger(__name__)


class NeuronPhase(Enum):
    """Phase de calcul du neurone."""
    FORWARD_PASS = "ForwardPass"
    ACTIVATING = "Activating"
    BACKWARD_PASS = "BackwardPass"
    UPDATING = "Updating"


@dataclass
class NeuronConfig:
    """Configuration d'un neurone.

    Attributes:
        bias: Entrée constante associée au dernier poids
        output_delay: Délai entre la fin d'une phase et l'émission (> 0)
        learning_rate: Pas de la descente de gradient (0 = poids figés)
    """
    bias: float = 1.0
    output_delay: float = 1.0
    learning_rate: float = 0.1

    def __post_init__(self):
        if not 0 < self.output_delay < INFINITY:
            raise ConfigurationError(f"output_delay doit être > 0 et fini: {self.output_delay}")
        if not math.isfinite(self.learning_rate) or self.learning_rate < 0:
            raise ConfigurationError(f"learning_rate doit être >= 0 et fini: {self.learning_rate}")
        if not math.isfinite(self.bias):
            raise ConfigurationError(f"bias doit être fini: {self.bias}")


@dataclass
class NeuronState(AtomicState):
    """État interne d'un neurone.

    Attributes:
        phase: Phase courante
        activation_kind: Non-linéarité
        loss_kind: Métrique d'erreur (neurone terminal)
        weighted_sum: Accumulateur (somme pondérée, puis somme des erreurs)
        pre_activation: Somme pondérée figée au moment de l'activation
        prediction: Dernière sortie activée
        target: Dernière cible reçue (neurone terminal)
        error_value: Dernier signal d'erreur dL/dz
        inputs_received: Nombre de canaux distincts ayant livré dans la phase
        weights: Un poids par entrée + un poids de biais en dernier
        last_inputs: Somme des valeurs reçues par canal pendant ForwardPass
    """
    kind = "Neuron"

    phase: NeuronPhase = NeuronPhase.FORWARD_PASS
    activation_kind: ActivationKind = ActivationKind.SIGMOID
    loss_kind: LossKind = LossKind.MSE
    weighted_sum: float = 0.0
    pre_activation: float = 0.0
    prediction: float = 0.0
    target: float = 0.0
    error_value: float = 0.0
    inputs_received: int = 0
    weights: np.ndarray = field(default_factory=lambda: np.zeros(0))
    last_inputs: np.ndarray = field(default_factory=lambda: np.zeros(0))


class Neuron(Atomic[NeuronState]):
    """Neurone artificiel piloté par événements.

    Ports:
        FInput0..FInput{n-1}: entrées avant (pondérées)
        BInput0..BInput{m-1}: erreurs venant des neurones en aval
        Target: cible, seulement si m == 0 (neurone terminal)
        FOutput: prédiction
        BOutput: erreur propagée vers l'amont
    """

    def __init__(
        self,
        name: str,
        num_forward_inputs: int,
        num_backward_inputs: int = 0,
        activation_kind: Union[ActivationKind, str] = ActivationKind.SIGMOID,
        loss_kind: Union[LossKind, str] = LossKind.MSE,
        config: Optional[NeuronConfig] = None,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
    ):
        """Initialise le neurone.

        Args:
            name: Identifiant du neurone
            num_forward_inputs: Nombre de canaux d'entrée (>= 1)
            num_backward_inputs: Nombre de neurones en aval (>= 0, 0 = terminal)
            activation_kind: "sigmoid" ou "relu"
            loss_kind: "mse" ou "log_loss"
            config: Paramètres (défaut: NeuronConfig())
            rng: Générateur numpy pour les poids initiaux
            seed: Graine, utilisée si rng n'est pas fourni

        Raises:
            ConfigurationError: Si un paramètre est invalide (rien n'est alloué)
        """
        num_forward_inputs = check_count(num_forward_inputs, 1, "num_forward_inputs")
        num_backward_inputs = check_count(num_backward_inputs, 0, "num_backward_inputs")
        activation_kind = ActivationKind.parse(activation_kind)
        loss_kind = LossKind.parse(loss_kind)
        self.config = config or NeuronConfig()

        if rng is None:
            rng = np.random.default_rng(seed)
        weights = rng.random(num_forward_inputs + 1)

        super().__init__(
            name,
            NeuronState(
                activation_kind=activation_kind,
                loss_kind=loss_kind,
                weights=weights,
                last_inputs=np.zeros(num_forward_inputs),
            ),
        )

        self.forward_inputs: List[Port] = [
            self.add_in_port(f"FInput{i}") for i in range(num_forward_inputs)
        ]
        self.backward_inputs: List[Port] = [
            self.add_in_port(f"BInput{i}") for i in range(num_backward_inputs)
        ]
        self.target: Optional[Port] = self.add_in_port("Target") if num_backward_inputs == 0 else None
        self.forward_output = self.add_out_port("FOutput")
        self.backward_output = self.add_out_port("BOutput")

        # Canaux ayant déjà livré dans la phase courante
        self._reported: Set[int] = set()

        self.state.weighted_sum = float(self.config.bias * self.state.weights[-1])
        self.state.sigma = INFINITY

    @property
    def num_forward_inputs(self) -> int:
        return len(self.forward_inputs)

    @property
    def num_backward_inputs(self) -> int:
        return len(self.backward_inputs)

    @property
    def is_terminal(self) -> bool:
        """Vrai si aucun neurone n'est en aval."""
        return not self.backward_inputs

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def external_transition(self, e: float):
        """Consomme les bags des ports d'entrée selon la phase courante.

        Raises:
            InvalidPhaseError: Entrée reçue en Activating/Updating, ou sur un
                port qui n'est pas écouté dans la phase courante
        """
        self._check_elapsed(e)
        if not self.has_input():
            self._consume_elapsed(e)
            return

        phase = self.state.phase
        if phase == NeuronPhase.FORWARD_PASS:
            self._reject_unexpected(self.forward_inputs)
            self._accumulate_forward()
            if self.state.inputs_received == self.num_forward_inputs:
                self._activate()
        elif phase == NeuronPhase.BACKWARD_PASS:
            if self.is_terminal:
                self._reject_unexpected([self.target])
                self._receive_target()
            else:
                self._reject_unexpected(self.backward_inputs)
                self._accumulate_backward()
            if self.state.inputs_received == max(self.num_backward_inputs, 1):
                self._enter(NeuronPhase.UPDATING, self.config.output_delay)
        else:
            self._protocol_violation(f"entrée reçue en phase {phase.value}")

    def internal_transition(self):
        """Avance la phase à l'échéance de sigma.

        Raises:
            InvalidPhaseError: En ForwardPass ou BackwardPass, qui attendent
                une entrée et ne doivent jamais échoir
        """
        phase = self.state.phase
        if phase == NeuronPhase.ACTIVATING:
            self._reset_accumulators(0.0)
            self._enter(NeuronPhase.BACKWARD_PASS, INFINITY)
        elif phase == NeuronPhase.UPDATING:
            self._update_weights()
            self._reset_accumulators(float(self.config.bias * self.state.weights[-1]))
            self.state.last_inputs = np.zeros(self.num_forward_inputs)
            self._enter(NeuronPhase.FORWARD_PASS, INFINITY)
        else:
            self._protocol_violation(f"transition interne en phase {phase.value}")

    def output(self):
        phase = self.state.phase
        if phase == NeuronPhase.ACTIVATING:
            if not self.is_terminal:
                self.forward_output.add_message(self.state.prediction)
        elif phase == NeuronPhase.UPDATING:
            self.backward_output.add_message(self.state.error_value)

    # -------------------------------------------------------------------------
    # Calculs
    # -------------------------------------------------------------------------

    def _accumulate_forward(self):
        state = self.state
        for i, port in enumerate(self.forward_inputs):
            if port.empty():
                continue
            self._mark_reported(i)
            for x in port.get_bag():
                state.weighted_sum += float(state.weights[i] * x)
                state.last_inputs[i] += x

    def _activate(self):
        state = self.state
        state.pre_activation = state.weighted_sum
        state.prediction = activate(state.activation_kind, state.weighted_sum)
        self._enter(NeuronPhase.ACTIVATING, self.config.output_delay)

    def _accumulate_backward(self):
        for i, port in enumerate(self.backward_inputs):
            if port.empty():
                continue
            self._mark_reported(i)
            self.state.weighted_sum += float(sum(port.get_bag()))
        if self.state.inputs_received == self.num_backward_inputs:
            self.state.error_value = self.state.weighted_sum * self._derivative()

    def _receive_target(self):
        state = self.state
        if self.target.empty():
            return
        self._mark_reported(0)
        # Plusieurs cibles dans le même bag: on prend leur moyenne
        state.target = float(np.mean(self.target.get_bag()))
        gradient = loss_gradient(state.loss_kind, state.prediction, state.target)
        state.error_value = gradient * self._derivative()

    def _derivative(self) -> float:
        state = self.state
        return activation_derivative(state.activation_kind, state.pre_activation, state.prediction)

    def _update_weights(self):
        """w[i] -= lr * erreur * x[i], le biais jouant le rôle de x[n]."""
        state = self.state
        step = self.config.learning_rate * state.error_value
        if step == 0:
            return
        state.weights[:-1] -= step * state.last_inputs
        state.weights[-1] -= step * self.config.bias

    # -------------------------------------------------------------------------
    # Utilitaires
    # -------------------------------------------------------------------------

    def _mark_reported(self, index: int):
        if index not in self._reported:
            self._reported.add(index)
            self.state.inputs_received += 1

    def _reset_accumulators(self, weighted_sum: float):
        self.state.weighted_sum = weighted_sum
        self.state.inputs_received = 0
        self._reported.clear()

    def _reject_unexpected(self, expected: List[Port]):
        for port in self.in_ports.values():
            if not port.empty() and all(port is not p for p in expected):
                self._protocol_violation(
                    f"entrée sur {port.name} inattendue en phase {self.state.phase.value}"
                )

    def _enter(self, phase: NeuronPhase, sigma: float):
        logger.debug("%s: %s -> %s (sigma=%s)", self.name, self.state.phase.value, phase.value, sigma)
        self.state.phase = phase
        self.state.sigma = sigma
