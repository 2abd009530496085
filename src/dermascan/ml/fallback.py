"""Synthetic fallback network.

Fixed architecture over an NHWC input:
    Conv2D(16 filters, 3x3, valid, ReLU) -> MaxPool(2x2, stride 2)
    -> Flatten -> Dense(num_classes, softmax)

Weights are Glorot-uniform random, biases zero. Nothing is trained, so
outputs are well-formed probabilities with no diagnostic value.
"""

from __future__ import annotations

import logging

import numpy as np
from onnx import ModelProto, TensorProto, checker, helper, numpy_helper

logger = logging.getLogger(__name__)

CONV_FILTERS = 16
CONV_KERNEL = 3
POOL_SIZE = 2
POOL_STRIDE = 2

# Standard ONNX opset / IR version pair accepted by current onnxruntime releases.
OPSET_VERSION = 13
IR_VERSION = 8

INPUT_NAME = "input"
OUTPUT_NAME = "probabilities"


def _glorot_uniform(
    rng: np.random.Generator, shape: tuple[int, ...], fan_in: int, fan_out: int
) -> np.ndarray:
    limit = np.sqrt(6.0 / (fan_in + fan_out))
    return rng.uniform(-limit, limit, size=shape).astype(np.float32)


def pooled_size(input_size: int) -> int:
    """Spatial size after the valid convolution and the max-pool."""
    conv = input_size - CONV_KERNEL + 1
    return (conv - POOL_SIZE) // POOL_STRIDE + 1


def build_fallback_graph(num_classes: int, input_size: int = 224, seed: int | None = None) -> ModelProto:
    """Build the fallback classifier as an in-memory ONNX model."""
    rng = np.random.default_rng(seed)
    pooled = pooled_size(input_size)
    flat_features = pooled * pooled * CONV_FILTERS

    conv_w = _glorot_uniform(
        rng,
        (CONV_FILTERS, 3, CONV_KERNEL, CONV_KERNEL),
        fan_in=3 * CONV_KERNEL * CONV_KERNEL,
        fan_out=CONV_FILTERS * CONV_KERNEL * CONV_KERNEL,
    )
    conv_b = np.zeros(CONV_FILTERS, dtype=np.float32)
    dense_w = _glorot_uniform(rng, (flat_features, num_classes), fan_in=flat_features, fan_out=num_classes)
    dense_b = np.zeros(num_classes, dtype=np.float32)

    initializers = [
        numpy_helper.from_array(conv_w, name="conv2d/kernel"),
        numpy_helper.from_array(conv_b, name="conv2d/bias"),
        numpy_helper.from_array(dense_w, name="dense/kernel"),
        numpy_helper.from_array(dense_b, name="dense/bias"),
    ]

    nodes = [
        # NHWC -> NCHW for the ONNX Conv/MaxPool layout
        helper.make_node("Transpose", [INPUT_NAME], ["nchw"], perm=[0, 3, 1, 2]),
        helper.make_node("Conv", ["nchw", "conv2d/kernel", "conv2d/bias"], ["conv"], kernel_shape=[3, 3]),
        helper.make_node("Relu", ["conv"], ["relu"]),
        helper.make_node(
            "MaxPool",
            ["relu"],
            ["pool"],
            kernel_shape=[POOL_SIZE, POOL_SIZE],
            strides=[POOL_STRIDE, POOL_STRIDE],
        ),
        # Back to NHWC so Flatten matches channels-last feature ordering
        helper.make_node("Transpose", ["pool"], ["pool_nhwc"], perm=[0, 2, 3, 1]),
        helper.make_node("Flatten", ["pool_nhwc"], ["flat"], axis=1),
        helper.make_node("Gemm", ["flat", "dense/kernel", "dense/bias"], ["logits"]),
        helper.make_node("Softmax", ["logits"], [OUTPUT_NAME], axis=-1),
    ]

    graph = helper.make_graph(
        nodes,
        "dermascan_fallback",
        inputs=[helper.make_tensor_value_info(INPUT_NAME, TensorProto.FLOAT, [1, input_size, input_size, 3])],
        outputs=[helper.make_tensor_value_info(OUTPUT_NAME, TensorProto.FLOAT, [1, num_classes])],
        initializer=initializers,
    )

    model = helper.make_model(
        graph,
        producer_name="dermascan",
        opset_imports=[helper.make_opsetid("", OPSET_VERSION)],
    )
    model.ir_version = IR_VERSION
    helper.set_model_props(
        model,
        {
            "loss": "categorical_crossentropy",
            "optimizer": "adam",
            "metrics": "accuracy",
            "trained": "false",
        },
    )
    checker.check_model(model)

    logger.debug("Built fallback graph (%d classes, %d flat features)", num_classes, flat_features)
    return model
