"""Sensor acquisition: temperature resolvers, their chain and host metadata."""

from .base import TemperatureReading, TemperatureResolver, parse_temperature
from .cache import CachedTemperatureSource
from .chain import ResolverChain, ResolverTimeoutError, build_default_chain
from .helper import HelperCommandResolver, parse_helper_output
from .host import HostCollector
from .nvidia import NvidiaSmiResolver, query_gpus
from .psutil_source import PsutilResolver, core_temperatures

__all__ = [
    "CachedTemperatureSource",
    "HelperCommandResolver",
    "HostCollector",
    "NvidiaSmiResolver",
    "PsutilResolver",
    "ResolverChain",
    "ResolverTimeoutError",
    "TemperatureReading",
    "TemperatureResolver",
    "build_default_chain",
    "core_temperatures",
    "parse_helper_output",
    "parse_temperature",
    "query_gpus",
]
