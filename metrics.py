import tensorflow as tf


def _box_area(boxes, clamp):
    w = boxes[..., 2] - boxes[..., 0]
    h = boxes[..., 3] - boxes[..., 1]
    if clamp:
        w = tf.maximum(0.0, w)
        h = tf.maximum(0.0, h)
    return w * h


def intersection_over_union(y_true, y_pred, clamp=True):
    """Per-sample IoU of two [N, 4] batches of [x_left, y_top, x_right, y_bottom] boxes.

    With ``clamp`` negative intersection extents count as zero, so disjoint
    boxes score 0. Without it the raw product is kept and disjoint boxes
    can fall outside [0, 1]. A zero union always scores 0.
    """
    y_true = tf.cast(y_true, tf.float32)
    y_pred = tf.cast(y_pred, tf.float32)

    x1 = tf.maximum(y_true[..., 0], y_pred[..., 0])
    y1 = tf.maximum(y_true[..., 1], y_pred[..., 1])
    x2 = tf.minimum(y_true[..., 2], y_pred[..., 2])
    y2 = tf.minimum(y_true[..., 3], y_pred[..., 3])

    if clamp:
        intersection = tf.maximum(0.0, x2 - x1) * tf.maximum(0.0, y2 - y1)
    else:
        intersection = (x2 - x1) * (y2 - y1)

    union = _box_area(y_true, clamp) + _box_area(y_pred, clamp) - intersection
    return tf.math.divide_no_nan(intersection, union)


def mean_iou(y_true, y_pred):
    return tf.reduce_mean(intersection_over_union(y_true, y_pred))


class BoxIoU(tf.keras.metrics.Mean):
    """Mean IoU over every sample seen since the last ``reset_state``."""

    def __init__(self, name="box_iou", clamp=True, **kwargs):
        super().__init__(name=name, **kwargs)
        self.clamp = clamp

    def update_state(self, y_true, y_pred, sample_weight=None):
        iou = intersection_over_union(y_true, y_pred, clamp=self.clamp)
        return super().update_state(iou, sample_weight=sample_weight)

    def get_config(self):
        config = super().get_config()
        config["clamp"] = self.clamp
        return config
