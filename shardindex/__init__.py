"""
Feature index maps for sharded sparse models.

Modules are grouped into data structures (keys, listings, index map backends),
driver-side pipelines, and configuration utilities.
"""
