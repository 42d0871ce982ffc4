# backend/oversight/__init__.py
from __future__ import annotations

"""
Oversight security scan orchestrator.

Routers live in oversight/api, the job store, scanner and tool adapters in
oversight/services, configuration in oversight/config.
"""
