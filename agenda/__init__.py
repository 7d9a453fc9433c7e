"""
Agenda availability service.
"""
