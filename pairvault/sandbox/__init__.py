"""In-memory collaborators and simulation for the pair-vault engine."""

from .chain import SandboxChain, SandboxComponent
from .wallet import SandboxWallet
from .oracle import StaticPriceOracle
from .router import SimulatedRouter
from .lending import SimulatedLending
from .pool import SimulatedPairPool
from .strategy import SandboxStrategy
from .models import SimulationMetrics, SimulationPoint, SimulationResult
from .simulator import PairVaultSimulator

__all__ = [
    "SandboxChain",
    "SandboxComponent",
    "SandboxWallet",
    "StaticPriceOracle",
    "SimulatedRouter",
    "SimulatedLending",
    "SimulatedPairPool",
    "SandboxStrategy",
    "SimulationMetrics",
    "SimulationPoint",
    "SimulationResult",
    "PairVaultSimulator",
]
