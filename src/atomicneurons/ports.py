"""
Ports - Canaux nommés transportant des valeurs réelles.

Un port reçoit zéro, une ou plusieurs valeurs par pas de simulation
(sémantique de "bag"). Le modèle ne consomme que deux informations:
- le port a-t-il reçu au moins une valeur ?
- l'ensemble des valeurs reçues depuis le dernier changement d'état
"""

from __future__ import annotations

from typing import Iterable, List, Tuple


class Port:
    """Canal nommé avec sémantique de bag.

    Attributes:
        name: Nom du port (unique dans un modèle)
    """

    def __init__(self, name: str):
        self.name = name
        self._bag: List[float] = []

    def __repr__(self) -> str:
        return f"Port({self.name!r}, bag={self._bag!r})"

    def __len__(self) -> int:
        return len(self._bag)

    def empty(self) -> bool:
        """Vrai si aucune valeur n'a été reçue."""
        return not self._bag

    def get_bag(self) -> Tuple[float, ...]:
        """Copie des valeurs reçues (ré-itérable, éventuellement vide)."""
        return tuple(self._bag)

    def add_message(self, value: float):
        """Ajoute une valeur au bag."""
        self._bag.append(float(value))

    def add_messages(self, values: Iterable[float]):
        """Ajoute plusieurs valeurs au bag, dans l'ordre."""
        for value in values:
            self.add_message(value)

    def clear(self):
        """Vide le bag."""
        self._bag.clear()
