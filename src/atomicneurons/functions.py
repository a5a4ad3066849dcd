"""
Fonctions d'activation et de perte.

Convention héritée pour la sigmoïde: p = 1 / (1 + e^z), donc
dp/dz = -p(1 - p). La ReLU est écrite (z + |z|) / 2.
"""

from __future__ import annotations

from enum import Enum
from typing import Union

import numpy as np

from .errors import ConfigurationError

# Borne pour éviter log(0) dans la log-loss
LOG_LOSS_EPS = 1e-12


class ActivationKind(Enum):
    """Non-linéarité appliquée à la somme pondérée."""
    SIGMOID = "sigmoid"
    RELU = "relu"

    @classmethod
    def parse(cls, value: Union["ActivationKind", str]) -> "ActivationKind":
        """Convertit un nom (insensible à la casse) en ActivationKind.

        Raises:
            ConfigurationError: Si la fonction est inconnue
        """
        return _parse(cls, value, "fonction d'activation")


class LossKind(Enum):
    """Métrique d'erreur."""
    MSE = "mse"
    LOG_LOSS = "log_loss"

    @classmethod
    def parse(cls, value: Union["LossKind", str]) -> "LossKind":
        """Convertit un nom (insensible à la casse) en LossKind.

        Raises:
            ConfigurationError: Si la métrique est inconnue
        """
        return _parse(cls, value, "fonction de perte")


def _parse(enum_cls, value, what: str):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        for member in enum_cls:
            if member.value == key:
                return member
    raise ConfigurationError(f"{what} invalide: {value!r}")


def activate(kind: ActivationKind, z: float) -> float:
    """Applique la fonction d'activation à la somme pondérée z."""
    if kind is ActivationKind.SIGMOID:
        # np.exp sature à inf sans lever d'exception
        with np.errstate(over="ignore"):
            return float(1.0 / (1.0 + np.exp(z)))
    if kind is ActivationKind.RELU:
        return float((z + abs(z)) / 2)
    raise ConfigurationError(f"fonction d'activation invalide: {kind!r}")


def activation_derivative(kind: ActivationKind, z: float, prediction: float) -> float:
    """Dérivée de l'activation par rapport à z.

    Args:
        kind: Fonction d'activation
        z: Somme pondérée (pré-activation)
        prediction: Valeur activée correspondante

    Returns:
        dp/dz
    """
    if kind is ActivationKind.SIGMOID:
        return -prediction * (1.0 - prediction)
    if kind is ActivationKind.RELU:
        return 1.0 if z > 0 else 0.0
    raise ConfigurationError(f"fonction d'activation invalide: {kind!r}")


def _clip_probability(prediction: float) -> float:
    return float(np.clip(prediction, LOG_LOSS_EPS, 1.0 - LOG_LOSS_EPS))


def compute_loss(kind: LossKind, prediction: float, target: float) -> float:
    """Valeur de la perte pour une prédiction et une cible.

    MSE: (p - y)^2
    LOG_LOSS: -(y ln p + (1 - y) ln(1 - p)), p borné à [eps, 1 - eps]
    """
    if kind is LossKind.MSE:
        return float((prediction - target) ** 2)
    if kind is LossKind.LOG_LOSS:
        p = _clip_probability(prediction)
        return float(-(target * np.log(p) + (1.0 - target) * np.log(1.0 - p)))
    raise ConfigurationError(f"fonction de perte invalide: {kind!r}")


def loss_gradient(kind: LossKind, prediction: float, target: float) -> float:
    """Dérivée de la perte par rapport à la prédiction (dL/dp)."""
    if kind is LossKind.MSE:
        return float(2.0 * (prediction - target))
    if kind is LossKind.LOG_LOSS:
        p = _clip_probability(prediction)
        return float((p - target) / (p * (1.0 - p)))
    raise ConfigurationError(f"fonction de perte invalide: {kind!r}")
