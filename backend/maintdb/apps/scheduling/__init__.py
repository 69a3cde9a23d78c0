"""Scheduling app: planned maintenance, recurrence and the calendar."""
