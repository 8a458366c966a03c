from __future__ import annotations

import dataclasses
import logging
import pathlib
import re
from typing import Optional, Union

from .utils.pstatelog import tuninglog

# please read https://www.kernel.org/doc/html/latest/admin-guide/pm/intel_pstate.html
# for the meaning of each attribute
INTEL_PSTATE_DIR = pathlib.Path("/sys/devices/system/cpu/intel_pstate")

MIN_PERF_PCT = "min_perf_pct"
MAX_PERF_PCT = "max_perf_pct"
NO_TURBO = "no_turbo"
HWP_DYNAMIC_BOOST = "hwp_dynamic_boost"

# the kernel stores the percentages in an u8
PERCENT_RANGE = range(0, 256)
# ascii decimal digits, with an optional plus sign
PERCENT_PATTERN = re.compile(r"\+?[0-9]+")


class PStateError(Exception):
    pass


class PStateNotFound(PStateError):
    def __init__(self, path: pathlib.Path):
        self.path = path
        super().__init__(f"intel_pstate directory not found: {path}")


class GetValueError(PStateError):
    def __init__(self, field: str, cause: Exception):
        self.field = field
        self.cause = cause
        super().__init__(f"failed to get {field} pstate value: {cause}")


class SetValueError(PStateError):
    def __init__(self, field: str, value, cause: Exception):
        self.field = field
        self.value = value
        self.cause = cause
        super().__init__(f"failed to set {field} pstate value to {value}: {cause}")


@dataclasses.dataclass
class PStateValues:
    """A set of pstate values that was retrieved, or is to be set."""

    min_perf_pct: int = 0
    max_perf_pct: int = 100
    no_turbo: bool = False
    # None when the running kernel does not expose hwp_dynamic_boost
    hwp_dynamic_boost: Optional[bool] = None

    def to_dict(self) -> dict[str, Optional[Union[int, bool]]]:
        return dataclasses.asdict(self)


def parse_percent(text: str) -> int:
    """Parse a percentage as the kernel prints it: a decimal u8."""
    token = text.strip()
    if not PERCENT_PATTERN.fullmatch(token):
        raise ValueError(f"invalid digit found in {token!r}")
    value = int(token)
    if value not in PERCENT_RANGE:
        raise ValueError(f"{value} is out of range")
    return value


def parse_flag(text: str) -> bool:
    """Parse a boolean attribute, only '0' and '1' are valid."""
    token = text.strip()
    if token == "1":
        return True
    if token == "0":
        return False
    raise ValueError(f"invalid boolean value {token!r}")


class PState:
    """Handle for fetching and modifying the intel_pstate kernel parameters.

    Every accessor opens, uses and closes its own sysfs file, nothing is kept
    between calls. Setting parameters on a real system requires root.
    """

    def __init__(self, path: Union[str, pathlib.Path] = INTEL_PSTATE_DIR):
        # pathlib turns "" into ".", which would bind to the working directory
        if not str(path):
            raise PStateNotFound(pathlib.Path(path))
        self.path = pathlib.Path(path)
        if not self.path.is_dir():
            raise PStateNotFound(self.path)

    def _file(self, field: str) -> pathlib.Path:
        return self.path / field

    def _get(self, field: str, parser):
        try:
            return parser(self._file(field).read_text(encoding="ascii"))
        except (OSError, ValueError) as e:
            raise GetValueError(field, e) from e

    def _set(self, field: str, value, text: str) -> None:
        file = self._file(field)
        try:
            previous: Optional[str] = file.read_text(encoding="ascii").strip()
        except (OSError, ValueError):
            # some attributes are write only for unprivileged users
            previous = None
        try:
            file.write_text(text, encoding="ascii")
        except OSError as e:
            raise SetValueError(field, value, e) from e
        tuninglog().info(
            f"write {text} in {file}",
            extra={
                "value": text,
                "previous": previous,
                "type": "sysfs",
                "file": str(file),
            },
        )

    def _set_percent(self, field: str, value: int) -> None:
        # bool is an int subclass but never a valid percentage
        if isinstance(value, bool) or not isinstance(value, int) or value not in PERCENT_RANGE:
            raise SetValueError(field, value, ValueError(f"{value!r} is not a percentage"))
        self._set(field, value, str(value))

    def _set_flag(self, field: str, value: bool) -> None:
        if not isinstance(value, bool):
            raise SetValueError(field, value, ValueError(f"{value!r} is not a boolean"))
        self._set(field, value, "1" if value else "0")

    def min_perf_pct(self) -> int:
        """Get the minimum performance percent."""
        return self._get(MIN_PERF_PCT, parse_percent)

    def set_min_perf_pct(self, value: int) -> None:
        """Set the minimum performance percent."""
        self._set_percent(MIN_PERF_PCT, value)

    def max_perf_pct(self) -> int:
        """Get the maximum performance percent."""
        return self._get(MAX_PERF_PCT, parse_percent)

    def set_max_perf_pct(self, value: int) -> None:
        """Set the maximum performance percent."""
        self._set_percent(MAX_PERF_PCT, value)

    def no_turbo(self) -> bool:
        """If True, turbo is disabled."""
        return self._get(NO_TURBO, parse_flag)

    def set_no_turbo(self, value: bool) -> None:
        """Set the no_turbo value; True will disable turbo."""
        self._set_flag(NO_TURBO, value)

    def has_hwp_dynamic_boost(self) -> bool:
        return self._file(HWP_DYNAMIC_BOOST).exists()

    def hwp_dynamic_boost(self) -> Optional[bool]:
        """Get the HWP dynamic boost state, None if the kernel does not provide it."""
        if not self.has_hwp_dynamic_boost():
            return None
        return self._get(HWP_DYNAMIC_BOOST, parse_flag)

    def set_hwp_dynamic_boost(self, value: bool) -> None:
        self._set_flag(HWP_DYNAMIC_BOOST, value)

    def values(self) -> PStateValues:
        return PStateValues(
            min_perf_pct=self.min_perf_pct(),
            max_perf_pct=self.max_perf_pct(),
            no_turbo=self.no_turbo(),
            hwp_dynamic_boost=self.hwp_dynamic_boost(),
        )

    def set_values(self, values: PStateValues) -> None:
        """Set all values in the given bundle.

        The writes are not atomic: a failure leaves the previous fields
        applied. hwp_dynamic_boost is only written when set, and a failure on
        it is ignored as it does not exist on every CPU.
        """
        self.set_min_perf_pct(values.min_perf_pct)
        self.set_max_perf_pct(values.max_perf_pct)
        self.set_no_turbo(values.no_turbo)
        if values.hwp_dynamic_boost is not None:
            try:
                self.set_hwp_dynamic_boost(values.hwp_dynamic_boost)
            except SetValueError as e:
                logging.warning(f"{e}, ignoring.")
