"""Participation and scoring services.

Plain functions and small collaborator classes that HTTP routes, CLI
commands and socket handlers call, keeping transport concerns out of the
award rules.
"""
