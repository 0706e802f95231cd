"""
Multi-agent orchestration and arbitration.

  - Orchestrator: owns the live agents, runs parallel reasoning rounds
  - Arbiter: resolves contributions into one ConfigurationPlan
  - ResourceLedger: committed percentage per resource type, never above 100

The engine wires these together with the recipe catalog and the applier.
"""
from .ledger import ResourceExhausted, ResourceLedger, ResourceType
from .arbiter import Arbiter
from .orchestrator import Orchestrator
