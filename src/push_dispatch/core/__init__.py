"""Dispatch core: engine, queue publisher, queue worker and batch operator."""
