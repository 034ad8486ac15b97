# facereg/core/tflite_helper.py
"""
Helper to build a TFLite interpreter.
Prefers tflite_runtime (light, good for Pi) and falls back to tensorflow.lite.
"""
import os
import logging

import numpy as np

from .settings import settings

logger = logging.getLogger(__name__)

# Log the chosen runtime only once
_logged_runtime = False


def get_interpreter(model_path, num_threads=None):
    """
    Create a TFLite Interpreter for `model_path`.

    Args:
        model_path: path to the .tflite file
        num_threads: inference threads (default: settings.TFLITE_NUM_THREADS)

    Raises:
        FileNotFoundError: model file is missing
        ImportError: neither tflite_runtime nor tensorflow is installed
    """
    global _logged_runtime

    if not os.path.isfile(model_path):
        raise FileNotFoundError(f"Model not found: {model_path}")

    if num_threads is None:
        num_threads = settings.tflite_num_threads

    try:
        from tflite_runtime.interpreter import Interpreter
        if not _logged_runtime:
            logger.info(f"[TFLite] Using tflite_runtime (threads={num_threads})")
            _logged_runtime = True
        return Interpreter(model_path=model_path, num_threads=num_threads)
    except ImportError:
        pass

    try:
        import tensorflow as tf
        if not _logged_runtime:
            logger.info(f"[TFLite] Using tensorflow.lite (threads={num_threads})")
            _logged_runtime = True
        return tf.lite.Interpreter(model_path=model_path, num_threads=num_threads)
    except ImportError:
        pass

    raise ImportError(
        "No TFLite interpreter found!\n"
        "Install one of:\n"
        "  - pip install tflite-runtime  (light, for Pi)\n"
        "  - pip install tensorflow      (full, for PC)"
    )


def quantization(detail):
    """Return (scale, zero_point) of an input/output tensor detail."""
    params = detail.get('quantization_parameters', {}) or {}
    scales = params.get('scales')
    zero_points = params.get('zero_points')
    scale = float(scales[0]) if scales is not None and len(scales) > 0 else 1.0
    zero_point = int(zero_points[0]) if zero_points is not None and len(zero_points) > 0 else 0
    return scale, zero_point


def dequantize(output, scale, zero_point):
    """INT8/UINT8 output -> float32. float_value = (q - zero_point) * scale"""
    if output.dtype in (np.int8, np.uint8):
        return (output.astype(np.float32) - zero_point) * scale
    return output.astype(np.float32)
