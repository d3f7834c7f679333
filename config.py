import os
from pathlib import Path

DATA_DIR = Path(os.getenv("VOC_DATA_DIR", "data"))
TRAIN_JSON = DATA_DIR / "pascal_train2007.json"
TRAIN_IMAGES = DATA_DIR / "VOC2007" / "JPEGImages"

IMAGE_SIZE = 224
BATCH_SIZE = 16
SEED = 42

# input of the pretrained feature extractor that consumes the batches
FEATURE_EXTRACTOR_INPUT_SHAPE = (224, 224, 3)

CLASSIFICATION = "classification"
LOCALIZATION = "localization"
COMBINED = "combined"
TASKS = (CLASSIFICATION, LOCALIZATION, COMBINED)

CLASS_OUTPUT = "class_output"
BOX_OUTPUT = "box_output"


class InputShapeError(ValueError):
    """Raised when a target size does not fit the feature extractor input."""


def check_input_shape(height, width):
    expected_h, expected_w, _ = FEATURE_EXTRACTOR_INPUT_SHAPE
    if (height, width) != (expected_h, expected_w):
        raise InputShapeError(
            f"Target size {height}x{width} does not match feature extractor input "
            f"{expected_h}x{expected_w}"
        )
