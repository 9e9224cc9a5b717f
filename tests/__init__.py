"""Test package for the arithmetic trainer.

Core tests drive the session engine with a fake clock and seeded generators,
so they never wait in real time. UI smoke tests run pygame with its dummy
video driver to avoid opening real windows. Run ``pytest`` from the project
root.
"""
