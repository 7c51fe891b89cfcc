"""
WorldGraph: grows a navigable graph of locations and exits from narrative text,
validates every expansion and stitches new regions back into the existing world.
"""

__version__ = "0.1.0"
