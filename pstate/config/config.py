from __future__ import annotations

import configparser
import dataclasses
import os

from ..intel_pstate import (
    HWP_DYNAMIC_BOOST,
    MAX_PERF_PCT,
    MIN_PERF_PCT,
    NO_TURBO,
    PERCENT_RANGE,
    PStateValues,
)
from ..utils import helpers as h


class Config:
    """Profiles of pstate values, one ini section per profile.

    Keys set in the [global] section apply to every profile.
    """

    def __init__(self, config_file: str):
        self.config_file = config_file
        if not os.path.isfile(self.config_file):
            h.fatal(f"File '{self.config_file}' does not exists.")

        self.profiles_config = configparser.RawConfigParser(default_section="global")
        self.profiles_config.read(self.config_file)

    def to_dict(self) -> dict:
        output_dict = dict()
        for section in self.profiles_config.sections():
            items = self.profiles_config.items(section)
            output_dict[section] = dict(items)
        return output_dict

    def get_sections(self) -> list[str]:
        """Return all sections of a config file."""
        return self.profiles_config.sections()

    def get_profiles(self) -> list[str]:
        return self.get_sections()

    def get_section(self, section_name) -> configparser.SectionProxy:
        """Return one section of a config file"""
        if not self.profiles_config.has_section(section_name):
            h.fatal(f"Profile '{section_name}' does not exist in '{self.config_file}'.")
        return self.profiles_config[section_name]

    def get_valid_keywords(self) -> list[str]:
        """Return the list of valid keywords."""
        return [MIN_PERF_PCT, MAX_PERF_PCT, NO_TURBO, HWP_DYNAMIC_BOOST]

    def get_percent(self, section_name, directive) -> int:
        value = self.get_section(section_name).getint(directive)
        if value not in PERCENT_RANGE:
            raise ValueError(f"{value} is not a percentage")
        return value

    def get_flag(self, section_name, directive) -> bool:
        return self.get_section(section_name).getboolean(directive)

    def validate_section(self, section_name):
        """Validate the syntax of a section."""
        for directive in self.get_section(section_name):
            if directive not in self.get_valid_keywords():
                h.fatal(f"Profile '{section_name}' has an invalid directive '{directive}'.")
            try:
                if directive in (MIN_PERF_PCT, MAX_PERF_PCT):
                    self.get_percent(section_name, directive)
                else:
                    self.get_flag(section_name, directive)
            except ValueError as e:
                h.fatal(f"Profile '{section_name}' has an invalid value for '{directive}': {e}")

    def validate_sections(self):
        """Validate all sections of a config file."""
        for section in self.get_sections():
            self.validate_section(section)

    def get_values(self, section_name, current: PStateValues) -> PStateValues:
        """Return current updated with the directives of a profile."""
        self.validate_section(section_name)
        section = self.get_section(section_name)
        values = dataclasses.replace(current)
        if MIN_PERF_PCT in section:
            values.min_perf_pct = self.get_percent(section_name, MIN_PERF_PCT)
        if MAX_PERF_PCT in section:
            values.max_perf_pct = self.get_percent(section_name, MAX_PERF_PCT)
        if NO_TURBO in section:
            values.no_turbo = self.get_flag(section_name, NO_TURBO)
        if HWP_DYNAMIC_BOOST in section:
            values.hwp_dynamic_boost = self.get_flag(section_name, HWP_DYNAMIC_BOOST)
        return values
