"""
Maintenance Scripts Module

Utility scripts for setting up and repairing PAF data.

Available scripts:
    - seed_templates.py: Creates the default workflow templates for a district
    - rebuild_statuses.py: Recomputes cached submission statuses from the approval steps

Usage:
    python -m scripts.seed_templates --tenant district-1
    python -m scripts.rebuild_statuses --tenant district-1
"""
