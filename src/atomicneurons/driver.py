"""
Pilote - Capacité de coordination injectée dans les modèles.

Le moteur de simulation (file d'événements, routage entre modèles,
départage des événements simultanés) est fourni par l'hôte. Les modèles
n'en dépendent qu'à travers le protocole Coordinator.

AtomicDriver implémente ce protocole pour UN modèle isolé: il tient
l'horloge, injecte des bags sur les ports et déclenche les transitions
dans l'ordre DEVS. C'est ce qui permet de tester un modèle sans moteur.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Protocol, Union, runtime_checkable

from .atomic import INFINITY, Atomic
from .errors import ConfigurationError, InvalidPhaseError

logger = logging.getLogger(__name__)

BagInput = Mapping[str, Union[float, Iterable[float]]]


@runtime_checkable
class Coordinator(Protocol):
    """Ce dont un modèle atomique a besoin de son hôte."""

    def schedule(self, model: Atomic, delta: float) -> None:
        """Planifie la prochaine transition interne dans delta unités de temps."""
        ...

    def deliver(self, model: Atomic, elapsed: float, bag: BagInput) -> None:
        """Livre un bag d'entrées après un temps écoulé elapsed."""
        ...


@dataclass(frozen=True)
class Emission:
    """Valeur émise par un modèle.

    Attributes:
        time: Instant simulé de l'émission
        model: Nom du modèle émetteur
        port: Port de sortie
        value: Valeur émise
    """
    time: float
    model: str
    port: str
    value: float


class AtomicDriver:
    """Coordinateur minimal pour un seul modèle atomique.

    Attributes:
        model: Modèle piloté
        time: Horloge simulée courante
        last_event_time: Instant de la dernière transition
        history: Toutes les émissions, dans l'ordre
    """

    def __init__(self, model: Atomic, start_time: float = 0.0):
        self.model = model
        self.time = start_time
        self.last_event_time = start_time
        self.history: List[Emission] = []
        self._delta = INFINITY
        self.schedule(model, model.time_advance())

    @property
    def next_event_time(self) -> float:
        """Instant de la prochaine transition interne (INFINITY si aucune)."""
        return self.last_event_time + self._delta

    # -------------------------------------------------------------------------
    # Protocole Coordinator
    # -------------------------------------------------------------------------

    def schedule(self, model: Atomic, delta: float) -> None:
        self._check_model(model)
        if delta < 0 or math.isnan(delta):
            raise InvalidPhaseError(
                f"{model.name}: time_advance négatif ({delta})", model_name=model.name
            )
        self._delta = delta

    def deliver(self, model: Atomic, elapsed: float, bag: BagInput) -> None:
        self._check_model(model)
        if elapsed > self._delta:
            raise InvalidPhaseError(
                f"{model.name}: livraison après l'échéance ({elapsed} > {self._delta})",
                model_name=model.name,
            )
        self._validate(bag)
        self._fill(bag)
        try:
            model.external_transition(elapsed)
        finally:
            model.clear_input_ports()
        self._settle(self.last_event_time + elapsed)

    # -------------------------------------------------------------------------
    # Pilotage
    # -------------------------------------------------------------------------

    def step(self) -> Dict[str, List[float]]:
        """Exécute la prochaine transition interne.

        Returns:
            Valeurs émises par port (vide si rien n'est planifié)
        """
        if self.next_event_time == INFINITY:
            return {}
        t = self.next_event_time
        outputs = self._emit(t)
        self.model.internal_transition()
        self._settle(t)
        return outputs

    def advance(self, until: float) -> List[Emission]:
        """Exécute toutes les transitions internes jusqu'à until inclus.

        Returns:
            Émissions produites pendant l'avance
        """
        start = len(self.history)
        while self.next_event_time <= until:
            self.step()
        self.time = max(self.time, until)
        return self.history[start:]

    def inject(self, time: float, bag: BagInput) -> Dict[str, List[float]]:
        """Livre un bag d'entrées à l'instant time.

        Les transitions internes antérieures sont exécutées d'abord. Si
        l'entrée coïncide avec l'échéance, la transition est confluente.

        Returns:
            Valeurs émises à l'instant time (cas confluent), sinon vide

        Raises:
            ValueError: Si time est dans le passé
            ConfigurationError: Si un port est inconnu
        """
        if time < self.time:
            raise ValueError(f"Injection dans le passé: {time} < {self.time}")
        self._validate(bag)
        while self.next_event_time < time:
            self.step()

        elapsed = time - self.last_event_time
        if self.next_event_time != time:
            self.deliver(self.model, elapsed, bag)
            return {}

        outputs = self._emit(time)
        self._fill(bag)
        try:
            self.model.confluent_transition(elapsed)
        finally:
            self.model.clear_input_ports()
        self._settle(time)
        return outputs

    def run(self, events: Iterable[tuple], until: float = INFINITY) -> List[Emission]:
        """Injecte une séquence (time, bag) puis avance jusqu'à until.

        Returns:
            Émissions produites pendant l'exécution
        """
        start = len(self.history)
        for time, bag in sorted(events, key=lambda event: event[0]):
            self.inject(time, bag)
        if until < INFINITY:
            self.advance(until)
        else:
            while self.next_event_time < INFINITY:
                self.step()
        return self.history[start:]

    # -------------------------------------------------------------------------
    # Interne
    # -------------------------------------------------------------------------

    def _check_model(self, model: Atomic):
        if model is not self.model:
            raise ConfigurationError(f"{model.name!r} n'est pas piloté par ce coordinateur")

    def _validate(self, bag: BagInput):
        unknown = [name for name in bag if name not in self.model.in_ports]
        if unknown:
            raise ConfigurationError(f"Port d'entrée inconnu sur {self.model.name!r}: {unknown!r}")

    def _fill(self, bag: BagInput):
        for name, values in bag.items():
            port = self.model.in_ports[name]
            if isinstance(values, (int, float)):
                port.add_message(values)
            else:
                port.add_messages(values)

    def _emit(self, t: float) -> Dict[str, List[float]]:
        self.model.output()
        outputs = self.model.collect_outputs()
        self.model.clear_output_ports()
        for port, values in outputs.items():
            for value in values:
                self.history.append(Emission(t, self.model.name, port, value))
        if outputs:
            logger.debug("%s @ %s: %s", self.model.name, t, outputs)
        return outputs

    def _settle(self, t: float):
        self.time = t
        self.last_event_time = t
        self.schedule(self.model, self.model.time_advance())
