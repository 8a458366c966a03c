import contextlib
import io
import json
import pathlib
from unittest.mock import patch

import pytest

from . import pstate
from . import test_pstate_common as tpc
from .intel_pstate import SetValueError
from .utils.pstatelog import tuninglog


class TestCommandLine(tpc.TestCommon):
    def run_main(self, *args, root=True) -> dict:
        """Run the pstate command against a fake sysfs and return its json output"""
        out = io.StringIO()
        with (
            patch("sys.argv", ["pstate", "-d", str(self.sysfs), *args]),
            patch("pstate.utils.helpers.is_root", return_value=root),
            contextlib.redirect_stdout(out),
        ):
            pstate.main()
        return json.loads(out.getvalue())

    def test_print_values(self):
        self.sysfs = self.load_sysfs("hwp")
        assert self.run_main(root=False) == {
            "min_perf_pct": 25,
            "max_perf_pct": 100,
            "no_turbo": False,
            "hwp_dynamic_boost": True,
        }

    def test_set_values(self):
        self.sysfs = self.load_sysfs("legacy")
        output = self.run_main("--min-perf-pct", "50", "--max-perf-pct", "90", "--turbo")
        assert output == {
            "min_perf_pct": 50,
            "max_perf_pct": 90,
            "no_turbo": False,
            "hwp_dynamic_boost": None,
        }

    def test_unsupported_hwp_dynamic_boost_is_ignored(self):
        self.sysfs = self.load_sysfs("legacy")
        denied = SetValueError("hwp_dynamic_boost", True, PermissionError(13, "Permission denied"))
        with patch("pstate.intel_pstate.PState.set_hwp_dynamic_boost", side_effect=denied) as p:
            output = self.run_main("--no-turbo", "--hwp-dynamic-boost")
        p.assert_called_once_with(True)
        assert output["no_turbo"] is True
        assert output["hwp_dynamic_boost"] is None

    def test_profile(self):
        self.sysfs = self.load_sysfs("hwp")
        output = self.run_main("-c", "./pstate/config/sample.ini", "-p", "powersave", "--max-perf-pct", "60")
        assert output == {
            "min_perf_pct": 0,
            "max_perf_pct": 60,
            "no_turbo": True,
            "hwp_dynamic_boost": True,
        }

    def test_profile_without_config(self):
        self.sysfs = self.load_sysfs("hwp")
        with pytest.raises(SystemExit):
            self.run_main("-p", "powersave")

    def test_set_requires_root(self):
        self.sysfs = self.load_sysfs("hwp")
        with pytest.raises(SystemExit) as exc:
            self.run_main("--no-turbo", root=False)
        assert exc.value.code == 1
        assert self.sysfs_content("no_turbo") == "0\n"

    def test_missing_directory(self):
        self.sysfs = pathlib.Path(self.tmp.name) / "missing"
        with pytest.raises(SystemExit) as exc:
            self.run_main()
        assert exc.value.code == 1

    def test_invalid_value(self):
        self.sysfs = self.load_sysfs("hwp")
        with pytest.raises(SystemExit):
            self.run_main("--min-perf-pct", "300")

    def test_log_file(self):
        self.sysfs = self.load_sysfs("hwp")
        logfile = pathlib.Path(self.tmp.name) / "pstate-tuning.log"
        handlers = list(tuninglog().handlers)
        try:
            self.run_main("--min-perf-pct", "30", "-l", str(logfile))
        finally:
            for handler in list(tuninglog().handlers):
                if handler not in handlers:
                    tuninglog().removeHandler(handler)
                    handler.close()
        records = [json.loads(line) for line in logfile.read_text().splitlines()]
        written = {pathlib.Path(r["file"]).name: r for r in records}
        assert written["min_perf_pct"]["value"] == "30"
        assert written["min_perf_pct"]["previous"] == "25"
        assert written["hwp_dynamic_boost"]["value"] == "1"
