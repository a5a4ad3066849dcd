import logging

from atomicneurons import AtomicDriver, Neuron, NeuronConfig


def main() -> None:
    logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    neuron = Neuron("n0", num_forward_inputs=2, num_backward_inputs=0,
                    activation_kind="sigmoid", loss_kind="mse",
                    config=NeuronConfig(learning_rate=0.5), seed=42)
    driver = AtomicDriver(neuron)

    for cycle in range(3):
        t = driver.time
        driver.inject(t, {"FInput0": 1.0})
        driver.inject(t + 0.5, {"FInput1": 0.5})
        driver.advance(t + 1.5)
        driver.inject(t + 2.0, {"Target": 1.0})
        emitted = driver.advance(t + 3.0)
        print(f"cycle {cycle}: prediction={neuron.state.prediction:.4f} "
              f"error={[e.value for e in emitted]}")
        print("  ", neuron.state)


if __name__ == "__main__":
    main()
