import logging
import math
from pathlib import Path

import numpy as np
import tensorflow as tf

from config import (
    BATCH_SIZE,
    BOX_OUTPUT,
    CLASS_OUTPUT,
    CLASSIFICATION,
    IMAGE_SIZE,
    LOCALIZATION,
    TASKS,
)
from dataset import BOX_CORNERS

logger = logging.getLogger(__name__)


class ImageLoadError(Exception):
    """Raised when an image file is missing or cannot be decoded."""


def load_image(path, target_height=IMAGE_SIZE, target_width=IMAGE_SIZE):
    """Load one image as a float32 (H, W, 3) array scaled to [0, 1]."""
    try:
        img_bytes = tf.io.read_file(str(path))
        img = tf.io.decode_image(img_bytes, channels=3, expand_animations=False)
    except tf.errors.OpError as e:
        raise ImageLoadError(f"Could not load image {path}: {e.message}") from e
    img.set_shape([None, None, 3])
    img = tf.image.convert_image_dtype(img, tf.float32)  # [0,1]
    img = tf.image.resize(img, [target_height, target_width], antialias=True)
    img = tf.clip_by_value(img, 0.0, 1.0)
    return img.numpy()


class BatchGenerator:
    def __init__(self, data, images_dir, target_height=IMAGE_SIZE, target_width=IMAGE_SIZE,
                 shuffle=True, batch_size=BATCH_SIZE, task=CLASSIFICATION, seed=None):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if len(data) == 0:
            raise ValueError("Cannot generate batches from an empty table")
        if task not in TASKS:
            raise ValueError(f"Unknown task {task!r}, expected one of {TASKS}")

        self.data = data.reset_index(drop=True)
        self.images_dir = Path(images_dir)
        self.target_height = target_height
        self.target_width = target_width
        self.shuffle = shuffle
        self.batch_size = batch_size
        self.task = task
        self.cursor = 0
        self._rng = np.random.default_rng(seed)

    def __len__(self):
        return len(self.data)

    @property
    def steps_per_epoch(self):
        return math.ceil(len(self.data) / self.batch_size)

    def reset(self):
        self.cursor = 0

    def next_indices(self):
        n = len(self.data)
        # with replacement, an epoch may not visit every row
        if self.shuffle:
            return self._rng.choice(n, size=self.batch_size, replace=True)

        start = self.cursor
        stop = min(start + self.batch_size, n)
        self.cursor += self.batch_size
        if self.cursor >= n:
            self.cursor = 0
        return np.arange(start, stop)

    def _targets(self, rows):
        classes = rows["class_index"].to_numpy(dtype=np.int32).reshape(-1, 1)
        boxes = rows[BOX_CORNERS].to_numpy(dtype=np.float32)
        if self.task == CLASSIFICATION:
            return classes
        if self.task == LOCALIZATION:
            return boxes
        return {CLASS_OUTPUT: classes, BOX_OUTPUT: boxes}

    def __iter__(self):
        return self

    def __next__(self):
        indices = self.next_indices()
        rows = self.data.iloc[indices]
        images = np.stack([
            load_image(self.images_dir / name, self.target_height, self.target_width)
            for name in rows["file_name"]
        ]).astype(np.float32)
        logger.debug("Batch of %d rows: %s", len(indices), indices.tolist())
        return images, self._targets(rows)

    def flow(self):
        """Endless Python generator over batches, for ``model.fit``."""
        while True:
            yield next(self)

    def output_signature(self):
        image_spec = tf.TensorSpec(
            shape=(None, self.target_height, self.target_width, 3), dtype=tf.float32
        )
        class_spec = tf.TensorSpec(shape=(None, 1), dtype=tf.int32)
        box_spec = tf.TensorSpec(shape=(None, 4), dtype=tf.float32)
        if self.task == CLASSIFICATION:
            return image_spec, class_spec
        if self.task == LOCALIZATION:
            return image_spec, box_spec
        return image_spec, {CLASS_OUTPUT: class_spec, BOX_OUTPUT: box_spec}

    def as_dataset(self):
        ds = tf.data.Dataset.from_generator(self.flow, output_signature=self.output_signature())
        return ds.prefetch(tf.data.AUTOTUNE)
