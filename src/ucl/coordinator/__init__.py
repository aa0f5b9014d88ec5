"""
Multi-substrate coordination: channels and the per-actor runner.
"""

from .channels import ChannelEvent, ChannelHub
from .runner import Coordinator, RunReport, SubstrateReport, coordinate, partition

__all__ = [
    "ChannelEvent",
    "ChannelHub",
    "Coordinator",
    "RunReport",
    "SubstrateReport",
    "coordinate",
    "partition",
]
