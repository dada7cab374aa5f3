from __future__ import annotations

from typing import Dict, List, Optional, Sequence

UNKNOWN_LABEL = "Unknown"

COCO_CLASS_NAMES = (
    "person", "bicycle", "car", "motorcycle", "airplane", "bus", "train", "truck", "boat",
    "traffic light", "fire hydrant", "stop sign", "parking meter", "bench", "bird", "cat",
    "dog", "horse", "sheep", "cow", "elephant", "bear", "zebra", "giraffe", "backpack",
    "umbrella", "handbag", "tie", "suitcase", "frisbee", "skis", "snowboard", "sports ball",
    "kite", "baseball bat", "baseball glove", "skateboard", "surfboard", "tennis racket",
    "bottle", "wine glass", "cup", "fork", "knife", "spoon", "bowl", "banana", "apple",
    "sandwich", "orange", "broccoli", "carrot", "hot dog", "pizza", "donut", "cake", "chair",
    "couch", "potted plant", "bed", "dining table", "toilet", "tv", "laptop", "mouse",
    "remote", "keyboard", "cell phone", "microwave", "oven", "toaster", "sink", "refrigerator",
    "book", "clock", "vase", "scissors", "teddy bear", "hair drier", "toothbrush",
)


def load_class_names(metadata_path: str) -> List[str]:
    """
    Load an ordered label table (index = class id) from a `metadata.yaml` style file:

        names:
          0: person
          1: bicycle
          ...

    Ids must be contiguous from 0. This function intentionally avoids adding a
    PyYAML dependency.
    """

    names: Dict[int, str] = {}
    in_names = False

    with open(metadata_path, "r", encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line == "names:":
                in_names = True
                continue
            if not in_names:
                continue

            # Parse "id: label"
            if ":" not in line:
                continue
            left, right = line.split(":", 1)
            left = left.strip()
            right = right.strip().strip("'").strip('"')
            if not left.isdigit():
                continue
            names[int(left)] = right

    expected = list(range(len(names)))
    if sorted(names) != expected:
        raise ValueError(f"Class ids in {metadata_path} must be contiguous from 0, got {sorted(names)}")
    return [names[i] for i in expected]


def label_for(class_id: Optional[int], labels: Sequence[str]) -> str:
    if class_id is None or class_id < 0 or class_id >= len(labels):
        return UNKNOWN_LABEL
    return labels[class_id]
