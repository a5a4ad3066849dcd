"""
Modèle atomique - Contrat DEVS commun aux unités du réseau.

Un modèle atomique est une machine à états temporisée pilotée par un
coordinateur externe, dans l'ordre fixe du protocole DEVS:
1. time_advance() donne le délai avant la prochaine transition interne
2. si aucune entrée n'arrive avant ce délai: output() puis internal_transition()
3. si une entrée arrive avant: external_transition(e) avec le temps écoulé e
4. si les deux coïncident: confluent_transition(e)

Le modèle ne fait ni I/O bloquante ni ordonnancement: il réagit.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from enum import Enum
from typing import ClassVar, Dict, Generic, List, TypeVar

import numpy as np

from .errors import ConfigurationError, InvalidPhaseError
from .ports import Port

logger = logging.getLogger(__name__)

# "Jamais": le modèle ne se déclenche pas spontanément
INFINITY = math.inf


@dataclass
class AtomicState:
    """État minimal d'un modèle atomique.

    Attributes:
        sigma: Délai avant la prochaine transition interne (INFINITY = inactif)
    """
    kind: ClassVar[str] = "Atomic"

    sigma: float = INFINITY

    def to_dict(self) -> Dict[str, object]:
        """Vue structurée de l'état pour le traçage.

        Les phases sont rendues par leur nom, les tableaux numpy en listes.
        """
        data: Dict[str, object] = {"name": self.kind}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, np.ndarray):
                value = [float(v) for v in value]
            data[f.name] = value
        return data

    def __str__(self) -> str:
        return "".join(
            f"[-|{key}|-]{value}[-|{key}|-]" for key, value in self.to_dict().items()
        )


def check_count(value, minimum: int, what: str) -> int:
    """Valide un nombre de ports (entier, numpy compris, >= minimum).

    Raises:
        ConfigurationError: Si value n'est pas un entier ou est trop petit
    """
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ConfigurationError(f"{what}: entier attendu, reçu {value!r}")
    if value < minimum:
        raise ConfigurationError(f"{what}: au moins {minimum} requis, reçu {value}")
    return int(value)


S = TypeVar("S", bound=AtomicState)


class Atomic(ABC, Generic[S]):
    """Modèle atomique générique.

    Les sous-classes déclarent leurs ports dans __init__ et implémentent
    les trois fonctions de transition/sortie sur self.state.

    Attributes:
        name: Identifiant du modèle
        state: État courant
        in_ports: Ports d'entrée, par nom, dans l'ordre de déclaration
        out_ports: Ports de sortie, par nom, dans l'ordre de déclaration
    """

    def __init__(self, name: str, state: S):
        self.name = name
        self.state = state
        self.in_ports: Dict[str, Port] = {}
        self.out_ports: Dict[str, Port] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, {self.state})"

    def add_in_port(self, name: str) -> Port:
        """Déclare un port d'entrée."""
        return self._add_port(self.in_ports, name)

    def add_out_port(self, name: str) -> Port:
        """Déclare un port de sortie."""
        return self._add_port(self.out_ports, name)

    def _add_port(self, ports: Dict[str, Port], name: str) -> Port:
        if name in self.in_ports or name in self.out_ports:
            raise ConfigurationError(f"Port {name!r} déjà déclaré sur {self.name!r}")
        port = Port(name)
        ports[name] = port
        return port

    # -------------------------------------------------------------------------
    # Contrat DEVS
    # -------------------------------------------------------------------------

    def time_advance(self) -> float:
        """Délai avant la prochaine transition interne."""
        return self.state.sigma

    @abstractmethod
    def internal_transition(self):
        """Transition planifiée, à l'échéance de sigma."""

    @abstractmethod
    def external_transition(self, e: float):
        """Réaction aux valeurs présentes sur les ports d'entrée.

        Args:
            e: Temps écoulé depuis la dernière transition
        """

    @abstractmethod
    def output(self):
        """Émet sur les ports de sortie, juste avant internal_transition()."""

    def confluent_transition(self, e: float):
        """Entrée et échéance simultanées: interne d'abord, puis externe."""
        self.internal_transition()
        self.external_transition(0.0)

    # -------------------------------------------------------------------------
    # Ports
    # -------------------------------------------------------------------------

    def has_input(self) -> bool:
        """Vrai si au moins un port d'entrée a reçu une valeur."""
        return any(not port.empty() for port in self.in_ports.values())

    def clear_input_ports(self):
        for port in self.in_ports.values():
            port.clear()

    def clear_output_ports(self):
        for port in self.out_ports.values():
            port.clear()

    def collect_outputs(self) -> Dict[str, List[float]]:
        """Valeurs émises, par port (ports vides omis)."""
        return {
            name: list(port.get_bag())
            for name, port in self.out_ports.items()
            if not port.empty()
        }

    # -------------------------------------------------------------------------
    # Utilitaires pour les sous-classes
    # -------------------------------------------------------------------------

    def _check_elapsed(self, e: float):
        if e < 0 or math.isnan(e):
            self._protocol_violation(f"temps écoulé invalide: {e}")

    def _consume_elapsed(self, e: float):
        """Retire e du délai restant; e ne peut pas dépasser sigma."""
        if e > self.state.sigma:
            self._protocol_violation(f"temps écoulé {e} au-delà de l'échéance {self.state.sigma}")
        if self.state.sigma < INFINITY:
            self.state.sigma -= e

    def _protocol_violation(self, message: str):
        phase = getattr(self.state, "phase", None)
        logger.error("%s: %s (phase=%s)", self.name, message, phase)
        raise InvalidPhaseError(f"{self.name}: {message}", model_name=self.name, phase=phase)
