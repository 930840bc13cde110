"""Shared helpers: process execution, logging setup, tool checks."""
