"""Single version source for the zone trainer."""

VERSION = "1.0.0"
