"""
Recognition label table loading.

字典文件：每行一个标签，UTF-8 或旧式 GBK 编码。索引 0 永远是 CTC blank。
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

BLANK = ""
# Appended when the model expects more classes than the file provides.
PLACEHOLDER = "\ufffd"

MIN_VALID_LINES = 1000
MIN_SINGLE_CHAR_RATIO = 0.9
MAX_REALIGN_DELTA = 16

# (encoding, errors, validate)
_DECODE_CHAIN = (
    ("utf-8", "strict", True),
    ("utf-8", "replace", True),
    ("gbk", "strict", True),
    ("utf-8", "replace", False),
)


@dataclass
class LabelTable:
    """Index-addressable labels; ``labels[0]`` is the blank symbol."""

    labels: list[str] = field(default_factory=lambda: [BLANK])
    encoding: Optional[str] = None
    source_path: Optional[str] = None

    def __post_init__(self):
        if not self.labels or self.labels[0] != BLANK:
            self.labels = [BLANK] + list(self.labels)

    def __len__(self) -> int:
        return len(self.labels)

    def __getitem__(self, index: int) -> str:
        return self.labels[index]


def _split_lines(text: str) -> list[str]:
    if text.startswith("\ufeff"):
        text = text[1:]
    lines = [line.rstrip("\r") for line in text.split("\n")]
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def is_valid_dictionary(lines: list[str]) -> bool:
    """At least 1000 lines, no replacement characters, mostly single-character labels."""
    if len(lines) < MIN_VALID_LINES:
        return False
    if any(PLACEHOLDER in line for line in lines):
        return False
    non_empty = [line for line in lines if line]
    if not non_empty:
        return False
    single = sum(1 for line in non_empty if len(line) == 1)
    return single / len(non_empty) >= MIN_SINGLE_CHAR_RATIO


class DictionaryLoader:
    """Loads label files through an encoding fallback chain; never raises."""

    def load(self, path: Union[str, Path]) -> LabelTable:
        path = Path(path)
        try:
            raw = path.read_bytes()
        except OSError as e:
            logger.warning(f"dictionary unreadable ({path}): {e}; using blank-only table")
            return LabelTable(source_path=str(path))

        for encoding, errors, validate in _DECODE_CHAIN:
            try:
                text = raw.decode(encoding, errors=errors)
            except (UnicodeDecodeError, LookupError):
                continue
            lines = _split_lines(text)
            if validate and not is_valid_dictionary(lines):
                continue
            if not validate:
                logger.warning(f"dictionary {path.name}: no encoding validated, lenient utf-8 used")
            logger.debug(f"dictionary {path.name}: {len(lines)} labels ({encoding}/{errors})")
            return LabelTable(labels=[BLANK] + lines, encoding=encoding, source_path=str(path))

        # Unreachable: the last chain entry never fails to decode.
        return LabelTable(source_path=str(path))


def load_label_table(path: Union[str, Path]) -> LabelTable:
    return DictionaryLoader().load(path)


def realign_labels(
    table: LabelTable,
    class_count: Optional[int],
    max_delta: int = MAX_REALIGN_DELTA,
) -> LabelTable:
    """
    Fit the table to the recogniser's class dimension.

    Differences of at most ``max_delta`` are absorbed: a space label plus
    placeholders when the model has more classes, truncation when it has
    fewer. Larger differences are left untouched.
    """
    if not class_count or class_count <= 0:
        return table
    delta = class_count - len(table)
    if delta == 0 or abs(delta) > max_delta:
        if delta:
            logger.warning(
                f"label table size {len(table)} vs model classes {class_count}: delta too large, not realigned"
            )
        return table
    labels = list(table.labels)
    if delta > 0:
        labels.append(" ")
        labels.extend([PLACEHOLDER] * (delta - 1))
    else:
        labels = labels[:class_count]
    logger.info(f"label table realigned {len(table)} -> {len(labels)}")
    return LabelTable(labels=labels, encoding=table.encoding, source_path=table.source_path)
