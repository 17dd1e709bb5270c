"""
barberbook - appointment booking backend for a barbershop on top of Google Calendar.
"""

__version__ = "0.1.0"
