"""
Backend Scripts Module

Utility scripts for database setup and maintenance.

Available scripts:
    - seed_data.py: Creates a sample directory, document and workflow
    - validate_workflow.py: Checks a stored workflow and lists its assignees

Usage:
    python -m scripts.seed_data
    python -m scripts.validate_workflow <workflow_id>
"""
