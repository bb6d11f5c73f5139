from .audit import Violation, find_violations
from .engine import IdentityResolutionEngine, ResolutionResult

__all__ = ["IdentityResolutionEngine", "ResolutionResult", "Violation", "find_violations"]
