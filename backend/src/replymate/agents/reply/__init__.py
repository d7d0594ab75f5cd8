"""Reply pipeline agents.

Stages, in order:
1. Classifier (deterministic regex scoring)
2. FactProvider (eBay order data, only when the intent needs it)
3. Constraint agents (risk + profit protection)
4. Reasoning assembler
5. TieredWriter (rule template -> low-cost model -> high-cost model)
6. Safety filter
"""

from .contracts import (
    ClassificationResult,
    ConstraintBundle,
    FactsResult,
    GenerationResult,
    OrderFacts,
    ReasoningBundle,
    SellerProfile,
)
from .classifier import classify, extract_order_id
from .constraints import build_constraints
from .reasoning import assemble
from .safety import safety_filter

__all__ = [
    "ClassificationResult",
    "ConstraintBundle",
    "FactsResult",
    "GenerationResult",
    "OrderFacts",
    "ReasoningBundle",
    "SellerProfile",
    "assemble",
    "build_constraints",
    "classify",
    "extract_order_id",
    "safety_filter",
]
