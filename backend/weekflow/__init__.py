"""Weekflow: week-bucketed task lifecycle engine."""
