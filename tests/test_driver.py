"""Tests pour le pilote d'un modèle isolé."""

import pytest
from atomicneurons.atomic import INFINITY
from atomicneurons.driver import AtomicDriver, Coordinator, Emission
from atomicneurons.errors import ConfigurationError, InvalidPhaseError
from atomicneurons.neuron import Neuron, NeuronConfig, NeuronPhase
from atomicneurons.loss import LossUnit, LossPhase


def make_neuron(num_backward_inputs=1, learning_rate=0.0):
    neuron = Neuron(
        "n",
        num_forward_inputs=2,
        num_backward_inputs=num_backward_inputs,
        config=NeuronConfig(learning_rate=learning_rate),
        seed=0,
    )
    neuron.state.weights[:] = [0.5, 0.5, 0.2]
    neuron.state.weighted_sum = 0.2
    return neuron


class TestAtomicDriver:
    """Tests pour AtomicDriver."""

    def test_implements_protocol(self):
        assert isinstance(AtomicDriver(make_neuron()), Coordinator)

    def test_idle_model(self):
        driver = AtomicDriver(make_neuron())

        assert driver.next_event_time == INFINITY
        assert driver.step() == {}

    def test_output_is_delayed_by_one(self):
        """La prédiction sort un pas après la dernière entrée."""
        neuron = make_neuron()
        driver = AtomicDriver(neuron)

        driver.inject(0.0, {"FInput0": 1.0})
        driver.inject(2.0, {"FInput1": [1.0]})

        assert neuron.state.phase == NeuronPhase.ACTIVATING
        assert driver.next_event_time == 3.0

        emitted = driver.advance(10.0)

        assert emitted == [Emission(3.0, "n", "FOutput", pytest.approx(0.2315, abs=1e-4))]
        assert neuron.state.phase == NeuronPhase.BACKWARD_PASS
        assert driver.time == 10.0

    def test_full_cycle(self):
        neuron = make_neuron()
        driver = AtomicDriver(neuron)

        emitted = driver.run([
            (0.0, {"FInput0": 1.0, "FInput1": 1.0}),
            (4.0, {"BInput0": 0.5}),
        ])

        assert [(e.time, e.port) for e in emitted] == [(1.0, "FOutput"), (5.0, "BOutput")]
        assert emitted[1].value == pytest.approx(neuron.state.error_value)
        assert neuron.state.phase == NeuronPhase.FORWARD_PASS
        assert neuron.state.inputs_received == 0
        assert neuron.state.weighted_sum == pytest.approx(0.2)
        assert driver.history == emitted

    def test_terminal_cycle_with_target(self):
        neuron = make_neuron(num_backward_inputs=0, learning_rate=0.5)
        driver = AtomicDriver(neuron)
        before = neuron.state.weights.copy()

        emitted = driver.run([
            (0.0, {"FInput0": 1.0, "FInput1": 1.0}),
            (1.5, {"Target": 1.0}),
        ])

        assert [(e.time, e.port) for e in emitted] == [(2.5, "BOutput")]
        assert neuron.state.phase == NeuronPhase.FORWARD_PASS
        assert (neuron.state.weights != before).all()

    def test_confluent_target(self):
        """Cible arrivant à l'échéance: Activating → BackwardPass → Updating."""
        neuron = make_neuron(num_backward_inputs=0)
        driver = AtomicDriver(neuron)
        driver.inject(0.0, {"FInput0": 1.0, "FInput1": 1.0})

        outputs = driver.inject(1.0, {"Target": 0.0})

        assert outputs == {}
        assert neuron.state.phase == NeuronPhase.UPDATING
        assert driver.next_event_time == 2.0

    def test_violation_propagates(self):
        """Une entrée pendant Activating fait échouer le run."""
        neuron = make_neuron()
        driver = AtomicDriver(neuron)
        driver.inject(0.0, {"FInput0": 1.0, "FInput1": 1.0})

        with pytest.raises(InvalidPhaseError):
            driver.inject(0.5, {"FInput0": 1.0})

        assert not neuron.has_input()

    def test_unknown_port(self):
        driver = AtomicDriver(make_neuron())

        with pytest.raises(ConfigurationError):
            driver.inject(0.0, {"FInput9": 1.0})

    def test_inject_in_the_past(self):
        driver = AtomicDriver(make_neuron())
        driver.advance(5.0)

        with pytest.raises(ValueError):
            driver.inject(1.0, {"FInput0": 1.0})

    def test_foreign_model(self):
        driver = AtomicDriver(make_neuron())

        with pytest.raises(ConfigurationError):
            driver.schedule(make_neuron(), 1.0)

    def test_loss_unit(self):
        unit = LossUnit("loss", num_inputs=1, activation_kind="relu", loss_kind="mse", seed=0)
        unit.state.weights[:] = [1.0, 0.2]
        unit.state.weighted_sum = 0.2
        driver = AtomicDriver(unit)

        emitted = driver.run([(0.0, {"Input0": 0.5}), (0.5, {"Error": 1.0})])

        assert emitted == [Emission(1.5, "loss", "Output", pytest.approx(0.09))]
        assert unit.state.phase == LossPhase.WAITING_FOR_INPUT

    def test_unknown_port_at_deadline_emits_nothing(self):
        """Un bag invalide à l'échéance ne déclenche ni sortie ni transition."""
        neuron = make_neuron()
        driver = AtomicDriver(neuron)
        driver.inject(0.0, {"FInput0": 1.0, "FInput1": 1.0})

        with pytest.raises(ConfigurationError):
            driver.inject(1.0, {"Bogus": 1.0})

        assert driver.history == []
        assert neuron.state.phase == NeuronPhase.ACTIVATING

        driver.step()

        assert [(e.time, e.port) for e in driver.history] == [(1.0, "FOutput")]
        assert neuron.state.phase == NeuronPhase.BACKWARD_PASS

    def test_cycle_through_deliver(self):
        """deliver() seul suffit à planifier les sorties."""
        neuron = make_neuron()
        driver = AtomicDriver(neuron)

        driver.deliver(neuron, 0.0, {"FInput0": 1.0, "FInput1": 1.0})

        assert driver.next_event_time == 1.0
        emitted = driver.advance(5.0)
        assert [(e.time, e.port) for e in emitted] == [(1.0, "FOutput")]

        driver.deliver(neuron, 1.0, {"BInput0": 0.5})

        assert driver.last_event_time == 2.0
        assert driver.next_event_time == 3.0
        emitted = driver.advance(5.0)
        assert [(e.time, e.port) for e in emitted] == [(3.0, "BOutput")]
        assert neuron.state.phase == NeuronPhase.FORWARD_PASS

    def test_deliver_after_deadline(self):
        """Un temps écoulé au-delà de l'échéance est une violation."""
        neuron = make_neuron()
        driver = AtomicDriver(neuron)
        driver.deliver(neuron, 0.0, {"FInput0": 1.0, "FInput1": 1.0})

        with pytest.raises(InvalidPhaseError):
            driver.deliver(neuron, 1.5, {})
