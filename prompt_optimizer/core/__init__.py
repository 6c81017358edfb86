"""
Core modules for Prompt Optimizer.

This package contains admission control, template scoring and the
strategy pipeline that rewrites prompts.
"""
