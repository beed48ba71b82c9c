"""Forecasting engines and persistence adapters."""
