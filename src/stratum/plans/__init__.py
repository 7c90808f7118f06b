"""YAML plan files describing operation sets."""

from stratum.plans.loader import Plan, load_plan, parse_plan, substitute

__all__ = ["Plan", "load_plan", "parse_plan", "substitute"]
