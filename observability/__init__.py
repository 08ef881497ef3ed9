# Cash-Up Engine - Observability Module
from .metrics import MetricsRegistry
