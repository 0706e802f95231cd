"""
Configuration changes and their application.

- changes.py: typed actions, ConfigChange, ResourceType
- models.py: ConfigurationPlan, ConfigurationResult and per-change outcomes
- actuator.py: Actuator protocol and the in-memory reference actuator
- http_actuator.py: client for an out-of-process actuator service
- applier.py: ConfigurationApplier (apply, revert, coalescing)
"""
