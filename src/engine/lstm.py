"""
LSTM cell and stacked LSTM network with hand-derived backpropagation through time.

The forward sweep keeps one StepRecord per time step (input, previous state and
every gate activation) so the backward sweep reuses the exact forward
intermediates instead of recomputing them.
"""

from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

from .errors import DimensionMismatchError, InvalidConfigurationError
from .linalg import (
    as_vector,
    matrix_vector_mul,
    matrix_vector_mul_transpose,
    outer_product,
    sigmoid,
    sigmoid_derivative,
    tanh_derivative,
)

GATES = ("input", "forget", "output", "candidate")


class GateActivations(NamedTuple):
    """Activations produced by one forward step"""

    input: np.ndarray  # i, sigmoid
    forget: np.ndarray  # f, sigmoid
    output: np.ndarray  # o, sigmoid
    candidate: np.ndarray  # g, tanh
    cell: np.ndarray  # c_t
    hidden: np.ndarray  # h_t


@dataclass(frozen=True)
class StepRecord:
    """Forward-pass intermediates of a single time step"""

    x: np.ndarray
    h_prev: np.ndarray
    c_prev: np.ndarray
    gates: GateActivations


class CellPass(NamedTuple):
    output: np.ndarray  # Hidden state of every step, shape (T, hidden_size)
    hidden: np.ndarray
    cell: np.ndarray
    trace: list[StepRecord]


class CellGradients(NamedTuple):
    parameters: dict[str, np.ndarray]
    inputs: np.ndarray  # dL/dx_t for every step, shape (T, input_size)
    hidden: np.ndarray  # dL/dh_0
    cell: np.ndarray  # dL/dc_0


class LSTMCell:
    """Single LSTM layer with named per-gate weight and bias tensors"""

    def __init__(self, input_size: int, hidden_size: int, rng: np.random.Generator | None = None):
        if input_size <= 0 or hidden_size <= 0:
            raise InvalidConfigurationError(
                f"LSTM sizes must be positive, got input_size={input_size}, hidden_size={hidden_size}"
            )

        self.input_size = input_size
        self.hidden_size = hidden_size

        rng = rng if rng is not None else np.random.default_rng()
        bound = 1.0 / np.sqrt(hidden_size)

        self.parameters: dict[str, np.ndarray] = {}
        for gate in GATES:
            self.parameters[f"weight_ih_{gate}"] = rng.uniform(
                -bound, bound, (hidden_size, input_size)
            )
            self.parameters[f"weight_hh_{gate}"] = rng.uniform(
                -bound, bound, (hidden_size, hidden_size)
            )
            self.parameters[f"bias_ih_{gate}"] = rng.uniform(-bound, bound, hidden_size)
            self.parameters[f"bias_hh_{gate}"] = rng.uniform(-bound, bound, hidden_size)

    def zero_state(self) -> tuple[np.ndarray, np.ndarray]:
        return np.zeros(self.hidden_size), np.zeros(self.hidden_size)

    def _pre_activation(self, gate: str, x: np.ndarray, h_prev: np.ndarray) -> np.ndarray:
        p = self.parameters
        return (
            matrix_vector_mul(p[f"weight_ih_{gate}"], x)
            + matrix_vector_mul(p[f"weight_hh_{gate}"], h_prev)
            + p[f"bias_ih_{gate}"]
            + p[f"bias_hh_{gate}"]
        )

    def forward_step(self, x_t, h_prev, c_prev) -> GateActivations:
        """Advance the cell by one time step

        Args:
            x_t: Input vector of length input_size
            h_prev: Previous hidden state
            c_prev: Previous cell state

        Returns:
            GateActivations (i, f, o, g, c_t, h_t)
        """
        x = as_vector(x_t)
        h_prev = as_vector(h_prev)
        c_prev = as_vector(c_prev)
        if x.shape[0] != self.input_size:
            raise DimensionMismatchError(
                f"Expected input of size {self.input_size}, got {x.shape[0]}"
            )
        if h_prev.shape[0] != self.hidden_size or c_prev.shape[0] != self.hidden_size:
            raise DimensionMismatchError(
                f"Expected state of size {self.hidden_size}, "
                f"got hidden {h_prev.shape[0]} and cell {c_prev.shape[0]}"
            )

        i = sigmoid(self._pre_activation("input", x, h_prev))
        f = sigmoid(self._pre_activation("forget", x, h_prev))
        o = sigmoid(self._pre_activation("output", x, h_prev))
        g = np.tanh(self._pre_activation("candidate", x, h_prev))

        c_t = f * c_prev + i * g
        h_t = o * np.tanh(c_t)
        return GateActivations(i, f, o, g, c_t, h_t)

    def forward(self, sequence, h0=None, c0=None) -> CellPass:
        """Run forward_step over every element of the sequence, carrying state"""
        steps = self._as_sequence(sequence)
        h, c = self.zero_state()
        if h0 is not None:
            h = as_vector(h0)
        if c0 is not None:
            c = as_vector(c0)

        outputs = np.empty((len(steps), self.hidden_size))
        trace: list[StepRecord] = []
        for t, x in enumerate(steps):
            gates = self.forward_step(x, h, c)
            trace.append(StepRecord(x=x, h_prev=h, c_prev=c, gates=gates))
            h, c = gates.hidden, gates.cell
            outputs[t] = h

        return CellPass(output=outputs, hidden=h, cell=c, trace=trace)

    def backward(self, trace: list[StepRecord], d_hidden) -> CellGradients:
        """Backpropagate through every step of a recorded forward pass

        Args:
            trace: StepRecords from forward(), in time order
            d_hidden: Gradient of the loss w.r.t. each step's hidden output,
                shape (T, hidden_size). Usually non-zero only at the last step.

        Returns:
            CellGradients with per-tensor gradients summed over time steps
        """
        d_hidden = np.asarray(d_hidden, dtype=np.float64)
        if d_hidden.shape != (len(trace), self.hidden_size):
            raise DimensionMismatchError(
                f"Expected hidden gradient of shape {(len(trace), self.hidden_size)}, "
                f"got {d_hidden.shape}"
            )

        p = self.parameters
        grads = {name: np.zeros_like(param) for name, param in p.items()}
        d_inputs = np.zeros((len(trace), self.input_size))
        dh_next = np.zeros(self.hidden_size)
        dc_next = np.zeros(self.hidden_size)

        for t in range(len(trace) - 1, -1, -1):
            record = trace[t]
            gates = record.gates

            dh = d_hidden[t] + dh_next
            tanh_c = np.tanh(gates.cell)

            d_output = dh * tanh_c * sigmoid_derivative(gates.output)
            dc = dc_next + dh * gates.output * tanh_derivative(tanh_c)
            d_input = dc * gates.candidate * sigmoid_derivative(gates.input)
            d_forget = dc * record.c_prev * sigmoid_derivative(gates.forget)
            d_candidate = dc * gates.input * tanh_derivative(gates.candidate)

            deltas = {
                "input": d_input,
                "forget": d_forget,
                "output": d_output,
                "candidate": d_candidate,
            }

            dh_next = np.zeros(self.hidden_size)
            for gate, delta in deltas.items():
                grads[f"weight_ih_{gate}"] += outer_product(delta, record.x)
                grads[f"weight_hh_{gate}"] += outer_product(delta, record.h_prev)
                grads[f"bias_ih_{gate}"] += delta
                grads[f"bias_hh_{gate}"] += delta
                dh_next += matrix_vector_mul_transpose(p[f"weight_hh_{gate}"], delta)
                d_inputs[t] += matrix_vector_mul_transpose(p[f"weight_ih_{gate}"], delta)

            dc_next = dc * gates.forget

        return CellGradients(parameters=grads, inputs=d_inputs, hidden=dh_next, cell=dc_next)

    def _as_sequence(self, sequence) -> np.ndarray:
        steps = np.asarray(sequence, dtype=np.float64)
        if steps.ndim == 1 and self.input_size == 1:
            steps = steps.reshape(-1, 1)
        if steps.ndim != 2 or steps.shape[1] != self.input_size:
            raise DimensionMismatchError(
                f"Expected a sequence of {self.input_size}-dimensional inputs, got shape {steps.shape}"
            )
        if steps.shape[0] == 0:
            raise DimensionMismatchError("Cannot run the cell over an empty sequence")
        return steps


@dataclass(frozen=True)
class RecurrentState:
    """Hidden and cell vectors of every layer"""

    hidden: tuple[np.ndarray, ...]
    cell: tuple[np.ndarray, ...]

    @classmethod
    def zeros(cls, num_layers: int, hidden_size: int) -> "RecurrentState":
        return cls(
            hidden=tuple(np.zeros(hidden_size) for _ in range(num_layers)),
            cell=tuple(np.zeros(hidden_size) for _ in range(num_layers)),
        )


class NetworkPass(NamedTuple):
    output: np.ndarray
    state: RecurrentState
    layer_passes: list[CellPass]


class LSTMNetwork:
    """Stacked LSTM layers followed by a linear projection of the last hidden state

    The projection head starts at zero, so an untrained network forecasts 0.
    """

    def __init__(
        self,
        input_size: int = 1,
        hidden_size: int = 10,
        num_layers: int = 1,
        output_size: int = 1,
        seed: int | None = None,
    ):
        if num_layers <= 0 or output_size <= 0:
            raise InvalidConfigurationError(
                f"num_layers and output_size must be positive, got {num_layers} and {output_size}"
            )

        self.input_size = input_size
        self.hidden_size = hidden_size
        self.num_layers = num_layers
        self.output_size = output_size

        rng = np.random.default_rng(seed)
        self.layers = [
            LSTMCell(input_size if index == 0 else hidden_size, hidden_size, rng)
            for index in range(num_layers)
        ]
        self.head = {
            "weight_out": np.zeros((output_size, hidden_size)),
            "bias_out": np.zeros(output_size),
        }

    def parameters(self) -> dict[str, np.ndarray]:
        """Live parameter tensors keyed by qualified name (mutating them mutates the network)"""
        params = {}
        for index, layer in enumerate(self.layers):
            for name, tensor in layer.parameters.items():
                params[f"layer{index}.{name}"] = tensor
        for name, tensor in self.head.items():
            params[f"head.{name}"] = tensor
        return params

    def zero_state(self) -> RecurrentState:
        return RecurrentState.zeros(self.num_layers, self.hidden_size)

    def forward(self, sequence, state: RecurrentState | None = None) -> NetworkPass:
        state = state if state is not None else self.zero_state()
        if len(state.hidden) != self.num_layers or len(state.cell) != self.num_layers:
            raise DimensionMismatchError(
                f"Expected state for {self.num_layers} layers, got {len(state.hidden)}"
            )

        layer_input = sequence
        passes: list[CellPass] = []
        for index, layer in enumerate(self.layers):
            cell_pass = layer.forward(layer_input, state.hidden[index], state.cell[index])
            passes.append(cell_pass)
            layer_input = cell_pass.output

        last_hidden = passes[-1].hidden
        output = matrix_vector_mul(self.head["weight_out"], last_hidden) + self.head["bias_out"]
        new_state = RecurrentState(
            hidden=tuple(p.hidden for p in passes),
            cell=tuple(p.cell for p in passes),
        )
        return NetworkPass(output=output, state=new_state, layer_passes=passes)

    def backward(self, network_pass: NetworkPass, d_output) -> dict[str, np.ndarray]:
        """Gradients of every parameter given dL/d(output) of a forward pass"""
        d_out = as_vector(d_output)
        if d_out.shape[0] != self.output_size:
            raise DimensionMismatchError(
                f"Expected output gradient of size {self.output_size}, got {d_out.shape[0]}"
            )

        last_hidden = network_pass.layer_passes[-1].hidden
        grads = {
            "head.weight_out": outer_product(d_out, last_hidden),
            "head.bias_out": d_out.copy(),
        }

        steps = len(network_pass.layer_passes[-1].trace)
        d_hidden = np.zeros((steps, self.hidden_size))
        d_hidden[-1] = matrix_vector_mul_transpose(self.head["weight_out"], d_out)

        for index in range(self.num_layers - 1, -1, -1):
            layer_pass = network_pass.layer_passes[index]
            cell_grads = self.layers[index].backward(layer_pass.trace, d_hidden)
            for name, grad in cell_grads.parameters.items():
                grads[f"layer{index}.{name}"] = grad
            d_hidden = cell_grads.inputs

        return grads
