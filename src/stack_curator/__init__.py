"""
Instance stack curator.

Startup and shutdown of ASG-backed EC2 instance stacks, one instance group
at a time, in dependency order.
"""

__version__ = "0.1.0"
