# Re-export the table registry and orchestrator at package root
from .clif_tables import ClifTables
from .ase_orchestrator import AseOrchestrator
from .ase import ASEConfig, compute_ase

# Version info
__version__ = "0.0.1"

# Public API
__all__ = [
    "ClifTables",
    "AseOrchestrator",
    "ASEConfig",
    "compute_ase",
]
